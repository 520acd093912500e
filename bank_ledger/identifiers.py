"""
Account Number Generation

Account numbers are externally visible, so they must not be predictable:
candidates are drawn from the operating system CSPRNG via ``secrets``.
Uniqueness is not checked here; the account store's unique constraint is the
single source of truth and the ledger retries on collision.
"""

import secrets
from typing import Callable


ACCOUNT_NUMBER_MIN = 1_000_000_000
ACCOUNT_NUMBER_MAX = 9_999_999_999

AccountNumberGenerator = Callable[[], str]


def generate_account_number() -> str:
    """Uniform 10-digit number in [ACCOUNT_NUMBER_MIN, ACCOUNT_NUMBER_MAX]"""
    span = ACCOUNT_NUMBER_MAX - ACCOUNT_NUMBER_MIN + 1
    return str(ACCOUNT_NUMBER_MIN + secrets.randbelow(span))


def is_valid_account_number(value: str) -> bool:
    """Check the 10-digit shape and range of an account number"""
    if not isinstance(value, str) or len(value) != 10 or not (value.isascii() and value.isdigit()):
        return False
    return ACCOUNT_NUMBER_MIN <= int(value) <= ACCOUNT_NUMBER_MAX
