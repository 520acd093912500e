"""
Domain Error Module

Every error surfaced to a caller carries a stable machine-readable kind and a
human-readable message. Storage-level errors live in storage.py and are
translated into these by the ledger, session and user components.
"""

from enum import Enum
from typing import Any, Dict


class ErrorKind(Enum):
    """Machine-readable error kinds"""
    UNAUTHENTICATED = "unauthenticated"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INVALID_STATE = "invalid_state"
    VALIDATION_FAILED = "validation_failed"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    INTERNAL = "internal"


class BankError(Exception):
    """Base class for all domain errors"""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind.value, "message": self.message}


class Unauthenticated(BankError):
    """Missing, invalid or expired session"""
    kind = ErrorKind.UNAUTHENTICATED


class Conflict(BankError):
    """Duplicate account type per owner, duplicate email or SSN"""
    kind = ErrorKind.CONFLICT


class NotFound(BankError):
    """Resource missing or not owned by the caller"""
    kind = ErrorKind.NOT_FOUND


class InvalidState(BankError):
    """Operation not permitted in the resource's current state"""
    kind = ErrorKind.INVALID_STATE


class ValidationFailed(BankError):
    """Malformed input, rejected before any business operation runs"""
    kind = ErrorKind.VALIDATION_FAILED


class ResourceExhausted(BankError):
    """
    A bounded retry budget ran out.

    Transient infrastructure signal; the caller may retry the whole request.
    """
    kind = ErrorKind.RESOURCE_EXHAUSTED


class Internal(BankError):
    """Unexpected store failure or a failed confirmatory read after a write"""
    kind = ErrorKind.INTERNAL
