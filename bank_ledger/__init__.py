"""
Bank Ledger

Account creation, funding and transaction history for a small deposit
service. Money is integer minor units throughout; balance changes are
atomic store-level increments recorded in an append-only transaction log.
"""

__version__ = "1.0.0"
