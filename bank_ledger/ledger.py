"""
Ledger Engine

Account creation and balance funding for authenticated callers.

Account numbers are assigned optimistically: a fresh random candidate is
inserted directly and the store's unique constraint decides. A collision on
the account number is retried with a new candidate, up to a fixed number of
attempts; exhausting them raises ResourceExhausted.

Funding inserts the transaction row and applies ``balance = balance + amount``
in the store within one unit of work, so concurrent deposits to the same
account never lose updates and a failure leaves neither effect behind.

The engine holds no balance or identifier state between calls; the storage
handle is shared and owned by the caller.
"""

from dataclasses import dataclass
from typing import List

from .accounts import Account, AccountStore, AccountType
from .errors import Conflict, Internal, InvalidState, NotFound, ResourceExhausted, ValidationFailed
from .funding import FundingSource
from .identifiers import AccountNumberGenerator, generate_account_number
from .logging_config import get_logger, log_action
from .storage import StorageError, StorageInterface, UniqueConstraintViolation
from .transactions import Transaction, TransactionStatus, TransactionStore, TransactionType


DEFAULT_MAX_ACCOUNT_NUMBER_ATTEMPTS = 5


@dataclass
class FundingResult:
    """Outcome of a successful funding call"""
    transaction: Transaction
    new_balance: int  # minor units


class LedgerEngine:
    """
    Orchestrates account creation, funding and transaction history reads
    """

    def __init__(
        self,
        storage: StorageInterface,
        account_number_generator: AccountNumberGenerator = generate_account_number,
        max_account_number_attempts: int = DEFAULT_MAX_ACCOUNT_NUMBER_ATTEMPTS
    ):
        if max_account_number_attempts < 1:
            raise ValueError("max_account_number_attempts must be at least 1")
        self.storage = storage
        self.accounts = AccountStore(storage)
        self.transactions = TransactionStore(storage)
        self.generate_account_number = account_number_generator
        self.max_account_number_attempts = max_account_number_attempts
        self.logger = get_logger("bank_ledger.ledger")

    # Account creation

    def create_account(self, owner_id: int, account_type: AccountType) -> Account:
        """
        Open a new account of ``account_type`` for ``owner_id``.

        Raises:
            Conflict: the owner already has an account of this type
            ResourceExhausted: every generated account number collided
            Internal: the account was written but could not be read back
        """
        if self.accounts.find_by_owner_and_type(owner_id, account_type):
            raise Conflict(f"You already have a {account_type.value} account")

        account_id = None
        for attempt in range(1, self.max_account_number_attempts + 1):
            account_number = self.generate_account_number()
            try:
                account_id = self.accounts.insert(owner_id, account_number, account_type)
                break
            except UniqueConstraintViolation as e:
                if e.columns == ("account_number",):
                    self.logger.info(
                        "Account number collision, retrying",
                        extra={"action": "create_account", "extra": {"attempt": attempt}}
                    )
                    continue
                if set(e.columns) == {"owner_id", "account_type"}:
                    # Concurrent create of the same type won the race
                    raise Conflict(f"You already have a {account_type.value} account") from e
                raise

        if account_id is None:
            log_action(
                self.logger, "warning",
                "Account number generation exhausted its retry budget",
                user_id=str(owner_id), action="create_account", resource="account",
                extra={"attempts": self.max_account_number_attempts}
            )
            raise ResourceExhausted("Failed to generate a unique account number. Please try again.")

        try:
            account = self.accounts.get(account_id)
        except StorageError as e:
            raise Internal("Account created but failed to retrieve details") from e
        if account is None:
            raise Internal("Account created but failed to retrieve details")

        log_action(
            self.logger, "info", "Account created",
            user_id=str(owner_id), action="create_account", resource=f"account:{account.id}",
            extra={"account_type": account_type.value}
        )
        return account

    def get_accounts(self, owner_id: int) -> List[Account]:
        """All accounts belonging to ``owner_id``"""
        return self.accounts.list_for_owner(owner_id)

    # Funding

    def fund_account(
        self,
        account_id: int,
        owner_id: int,
        amount: int,
        funding_source: FundingSource
    ) -> FundingResult:
        """
        Deposit ``amount`` minor units into an account owned by ``owner_id``.

        ``funding_source`` is expected to be validated already; the upper
        amount bound is enforced by the caller.

        Raises:
            ValidationFailed: amount is not a positive integer
            NotFound: no such account for this owner
            InvalidState: the account is not active
            Internal: the deposit committed but could not be read back
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 1:
            raise ValidationFailed("Amount must be a positive whole number of cents")

        with self.storage.atomic():
            account = self.accounts.get_owned(account_id, owner_id)
            if account is None:
                raise NotFound("Account not found")
            if not account.is_active:
                raise InvalidState("Account is not active")

            transaction_id = self.transactions.insert(
                account_id=account.id,
                transaction_type=TransactionType.DEPOSIT,
                amount=amount,
                description=f"Funding from {funding_source.source_type.value}",
                status=TransactionStatus.COMPLETED
            )
            self.accounts.increment_balance(account.id, amount)

        try:
            updated = self.accounts.get(account.id)
            transaction = self.transactions.get(transaction_id)
        except StorageError as e:
            raise Internal("Funding recorded but failed to retrieve details") from e
        if updated is None or transaction is None:
            raise Internal("Funding recorded but failed to retrieve details")

        log_action(
            self.logger, "info", "Account funded",
            user_id=str(owner_id), action="fund_account", resource=f"account:{account.id}",
            extra={"transaction_id": transaction.id, "amount": amount,
                   "source_type": funding_source.source_type.value}
        )
        return FundingResult(transaction=transaction, new_balance=updated.balance)

    # Transaction history

    def get_transactions(self, account_id: int, owner_id: int) -> List[Transaction]:
        """
        Transaction history of an owned account, newest first.

        Two store round-trips regardless of history length: one for the
        account, one for its transactions.

        Raises:
            NotFound: no such account for this owner
        """
        account = self.accounts.get_owned(account_id, owner_id)
        if account is None:
            raise NotFound("Account not found")

        transactions = self.transactions.list_for_account(account.id)
        for transaction in transactions:
            transaction.account_type = account.account_type
        return transactions
