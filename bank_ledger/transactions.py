"""
Transaction Log Module

Append-only record of balance mutations. Rows are immutable once written;
ids and created_at are assigned by the store.
"""

from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum

from .accounts import AccountType
from .money import Money
from .storage import StorageInterface, utc_now_iso
from .schema import TRANSACTIONS


class TransactionType(Enum):
    """Types of balance mutations"""
    DEPOSIT = "deposit"


class TransactionStatus(Enum):
    """States of a transaction"""
    COMPLETED = "completed"


# Newest first; id breaks ties between rows sharing a timestamp tick
HISTORY_ORDER = ("-created_at", "-id")


@dataclass
class Transaction:
    """
    One entry of an account's transaction log
    """
    id: int
    account_id: int
    transaction_type: TransactionType
    amount: int  # minor units, always positive
    description: str  # display-only text
    status: TransactionStatus
    created_at: datetime
    processed_at: Optional[datetime] = None
    account_type: Optional[AccountType] = None  # read-side annotation

    @property
    def amount_money(self) -> Money:
        return Money(self.amount)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Transaction':
        return cls(
            id=row["id"],
            account_id=row["account_id"],
            transaction_type=TransactionType(row["transaction_type"]),
            amount=int(row["amount"]),
            description=row["description"] or "",
            status=TransactionStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            processed_at=datetime.fromisoformat(row["processed_at"]) if row.get("processed_at") else None,
        )


class TransactionStore:
    """Persistence for the transaction log"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table = TRANSACTIONS.name

    def insert(
        self,
        account_id: int,
        transaction_type: TransactionType,
        amount: int,
        description: str,
        status: TransactionStatus = TransactionStatus.COMPLETED
    ) -> int:
        processed_at = utc_now_iso() if status == TransactionStatus.COMPLETED else None
        return self.storage.insert(self.table, {
            "account_id": account_id,
            "transaction_type": transaction_type.value,
            "amount": amount,
            "description": description,
            "status": status.value,
            "processed_at": processed_at,
        })

    def get(self, transaction_id: int) -> Optional[Transaction]:
        row = self.storage.load(self.table, transaction_id)
        return Transaction.from_row(row) if row else None

    def list_for_account(self, account_id: int) -> List[Transaction]:
        """All transactions of an account, newest first, in one query"""
        rows = self.storage.find(self.table, {"account_id": account_id}, order_by=HISTORY_ORDER)
        return [Transaction.from_row(row) for row in rows]
