"""
Account Management Module

Account records and the account store. Balances are integer minor units and
only ever change through the store's atomic increment; the store never reads
a balance back to compute a new one.
"""

from datetime import datetime
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from enum import Enum

from .money import Money
from .storage import StorageInterface, StorageError
from .schema import ACCOUNTS


class AccountType(Enum):
    """Deposit products offered to customers"""
    CHECKING = "checking"
    SAVINGS = "savings"


class AccountStatus(Enum):
    """Account lifecycle states"""
    ACTIVE = "active"
    INACTIVE = "inactive"


@dataclass
class Account:
    """
    Customer deposit account
    """
    id: int
    owner_id: int
    account_number: str
    account_type: AccountType
    balance: int  # minor units
    status: AccountStatus
    created_at: datetime

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    @property
    def balance_money(self) -> Money:
        return Money(self.balance)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Account':
        return cls(
            id=row["id"],
            owner_id=row["owner_id"],
            account_number=row["account_number"],
            account_type=AccountType(row["account_type"]),
            balance=int(row["balance"]),
            status=AccountStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )


class AccountStore:
    """Persistence for accounts on top of a shared storage handle"""

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table = ACCOUNTS.name

    def insert(self, owner_id: int, account_number: str, account_type: AccountType) -> int:
        """
        Insert a new active, zero-balance account.

        Raises:
            UniqueConstraintViolation: on a duplicate account number or a
                second account of the same type for the owner
        """
        return self.storage.insert(self.table, {
            "owner_id": owner_id,
            "account_number": account_number,
            "account_type": account_type.value,
            "balance": 0,
            "status": AccountStatus.ACTIVE.value,
        })

    def get(self, account_id: int) -> Optional[Account]:
        row = self.storage.load(self.table, account_id)
        return Account.from_row(row) if row else None

    def get_owned(self, account_id: int, owner_id: int) -> Optional[Account]:
        """Account by id, only if it belongs to owner_id"""
        row = self.storage.find_one(self.table, {"id": account_id, "owner_id": owner_id})
        return Account.from_row(row) if row else None

    def find_by_owner_and_type(self, owner_id: int, account_type: AccountType) -> Optional[Account]:
        row = self.storage.find_one(self.table, {
            "owner_id": owner_id,
            "account_type": account_type.value,
        })
        return Account.from_row(row) if row else None

    def get_by_number(self, account_number: str) -> Optional[Account]:
        row = self.storage.find_one(self.table, {"account_number": account_number})
        return Account.from_row(row) if row else None

    def list_for_owner(self, owner_id: int) -> List[Account]:
        rows = self.storage.find(self.table, {"owner_id": owner_id}, order_by=["id"])
        return [Account.from_row(row) for row in rows]

    def increment_balance(self, account_id: int, delta: int) -> None:
        """Store-level ``balance = balance + delta``"""
        if not self.storage.increment(self.table, account_id, "balance", delta):
            raise StorageError(f"Account {account_id} vanished during balance update")

    def set_status(self, account_id: int, status: AccountStatus) -> None:
        if not self.storage.update(self.table, account_id, {"status": status.value}):
            raise StorageError(f"Account {account_id} not found")
