"""
Table definitions for all backends.

Uniqueness rules live here as store constraints: account numbers, one
account per (owner, type), user email, SSN blind index and session tokens.
"""

from .storage import TableSchema


USERS = TableSchema(
    name="users",
    columns=(
        ("email", "TEXT"),
        ("password_hash", "TEXT"),
        ("password_salt", "TEXT"),
        ("first_name", "TEXT"),
        ("last_name", "TEXT"),
        ("phone_number", "TEXT"),
        ("date_of_birth", "TEXT"),
        ("ssn_encrypted", "TEXT"),
        ("ssn_hash", "TEXT"),
        ("address", "TEXT"),
        ("city", "TEXT"),
        ("state", "TEXT"),
        ("zip_code", "TEXT"),
        ("created_at", "TEXT"),
    ),
    unique=(("email",), ("ssn_hash",)),
)

SESSIONS = TableSchema(
    name="sessions",
    columns=(
        ("user_id", "INTEGER"),
        ("token", "TEXT"),
        ("expires_at", "TEXT"),
        ("created_at", "TEXT"),
    ),
    unique=(("token",),),
    indexes=(("user_id",),),
)

ACCOUNTS = TableSchema(
    name="accounts",
    columns=(
        ("owner_id", "INTEGER"),
        ("account_number", "TEXT"),
        ("account_type", "TEXT"),
        ("balance", "INTEGER"),
        ("status", "TEXT"),
        ("created_at", "TEXT"),
    ),
    unique=(("account_number",), ("owner_id", "account_type")),
)

TRANSACTIONS = TableSchema(
    name="transactions",
    columns=(
        ("account_id", "INTEGER"),
        ("transaction_type", "TEXT"),
        ("amount", "INTEGER"),
        ("description", "TEXT"),
        ("status", "TEXT"),
        ("processed_at", "TEXT"),
        ("created_at", "TEXT"),
    ),
    indexes=(("account_id", "created_at"),),
)

ALL_TABLES = (USERS, SESSIONS, ACCOUNTS, TRANSACTIONS)
