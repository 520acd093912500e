"""
Tests for the transaction log store
"""

from bank_ledger.accounts import AccountType
from bank_ledger.schema import ALL_TABLES
from bank_ledger.storage import InMemoryStorage
from bank_ledger.transactions import TransactionStatus, TransactionStore, TransactionType


class TestTransactionStore:
    """Transaction persistence"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.storage.ensure_schema(ALL_TABLES)
        self.store = TransactionStore(self.storage)

    def test_insert_and_get(self):
        transaction_id = self.store.insert(
            account_id=1,
            transaction_type=TransactionType.DEPOSIT,
            amount=1500,
            description="Funding from card"
        )
        txn = self.store.get(transaction_id)

        assert txn.id == transaction_id
        assert txn.account_id == 1
        assert txn.transaction_type == TransactionType.DEPOSIT
        assert txn.amount == 1500
        assert txn.amount_money.minor_units == 1500
        assert txn.status == TransactionStatus.COMPLETED
        assert txn.processed_at is not None
        assert txn.account_type is None

    def test_get_missing(self):
        assert self.store.get(1) is None

    def test_list_for_account(self):
        """Newest first, scoped to one account"""
        first = self.store.insert(1, TransactionType.DEPOSIT, 100, "Funding from card")
        self.store.insert(2, TransactionType.DEPOSIT, 200, "Funding from card")
        third = self.store.insert(1, TransactionType.DEPOSIT, 300, "Funding from bank")

        history = self.store.list_for_account(1)
        assert [t.id for t in history] == [third, first]
        assert self.store.list_for_account(3) == []

    def test_account_type_annotation_is_not_persisted(self):
        transaction_id = self.store.insert(1, TransactionType.DEPOSIT, 100, "Funding from card")
        txn = self.store.get(transaction_id)
        txn.account_type = AccountType.SAVINGS
        assert self.store.get(transaction_id).account_type is None
