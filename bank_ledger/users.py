"""
User Management Module

Signup, login and logout. Passwords are salted scrypt hashes; SSNs are kept
encrypted with a blind index for uniqueness. Logging in revokes every older
session of the user so only the newest login stays valid.
"""

import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from .encryption import AESGCMEncryptionProvider, hash_ssn
from .errors import Conflict, Internal, Unauthenticated, ValidationFailed
from .logging_config import get_logger, log_action
from .schema import USERS
from .sessions import SessionAuthority
from .storage import StorageError, StorageInterface, UniqueConstraintViolation


@dataclass
class PasswordPolicy:
    """Password policy configuration"""
    min_length: int = 8
    max_length: int = 64
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_digit: bool = True
    require_special: bool = True


_SPECIAL = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


@dataclass
class SignupData:
    email: str
    password: str
    first_name: str
    last_name: str
    phone_number: str
    date_of_birth: str  # ISO date
    ssn: str
    address: str
    city: str
    state: str
    zip_code: str


@dataclass
class User:
    """Public view of a user; never carries credentials or SSN material"""
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: str
    date_of_birth: str
    address: str
    city: str
    state: str
    zip_code: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'User':
        return cls(
            id=row["id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            phone_number=row["phone_number"],
            date_of_birth=row["date_of_birth"],
            address=row["address"],
            city=row["city"],
            state=row["state"],
            zip_code=row["zip_code"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )


@dataclass
class AuthResult:
    user: User
    token: str
    expires_at: datetime


@dataclass
class LogoutResult:
    success: bool
    message: str


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


class UserManager:
    """Account holders: registration and credential checks"""

    def __init__(
        self,
        storage: StorageInterface,
        sessions: SessionAuthority,
        encryption_provider: Optional[AESGCMEncryptionProvider],
        ssn_pepper: str,
        minimum_age: int = 18,
        password_policy: Optional[PasswordPolicy] = None
    ):
        self.storage = storage
        self.sessions = sessions
        self.encryption = encryption_provider
        self.ssn_pepper = ssn_pepper
        self.minimum_age = minimum_age
        self.password_policy = password_policy or PasswordPolicy()
        self.table = USERS.name
        self.logger = get_logger("bank_ledger.users")

    def signup(self, data: SignupData) -> AuthResult:
        """
        Register a user and open their first session.

        Raises:
            ValidationFailed: weak password, under age, malformed SSN
            Conflict: email or SSN already registered
            Internal: PII protection not configured, or the user was written
                but could not be read back
        """
        is_valid, violations = self.validate_password(data.password)
        if not is_valid:
            raise ValidationFailed("; ".join(violations))

        try:
            birth_date = date.fromisoformat(data.date_of_birth)
        except ValueError:
            raise ValidationFailed("Date of birth must be a valid date (YYYY-MM-DD)")
        if calculate_age(birth_date) < self.minimum_age:
            raise ValidationFailed(f"You must be at least {self.minimum_age} years old to sign up.")

        if not re.fullmatch(r"\d{9}", data.ssn or ""):
            raise ValidationFailed("SSN must be 9 digits")

        if self.encryption is None or not self.ssn_pepper:
            raise Internal("PII encryption is not configured")

        email = data.email.strip().lower()
        ssn_hash = hash_ssn(data.ssn, self.ssn_pepper)

        if self.storage.find_one(self.table, {"email": email}):
            raise Conflict("User with this email already exists")
        if self.storage.find_one(self.table, {"ssn_hash": ssn_hash}):
            raise Conflict("User with this SSN already exists")

        salt = secrets.token_hex(16)
        try:
            user_id = self.storage.insert(self.table, {
                "email": email,
                "password_hash": self._hash_password(data.password, salt),
                "password_salt": salt,
                "first_name": data.first_name,
                "last_name": data.last_name,
                "phone_number": data.phone_number,
                "date_of_birth": birth_date.isoformat(),
                "ssn_encrypted": self.encryption.encrypt(data.ssn),
                "ssn_hash": ssn_hash,
                "address": data.address,
                "city": data.city,
                "state": data.state.upper(),
                "zip_code": data.zip_code,
            })
        except UniqueConstraintViolation as e:
            if e.columns == ("email",):
                raise Conflict("User with this email already exists") from e
            raise Conflict("User with this SSN already exists") from e

        user = self.get_user(user_id)
        if user is None:
            raise Internal("Failed to create user")

        session = self.sessions.issue(user.id)
        log_action(self.logger, "info", "User signed up",
                   user_id=str(user.id), action="signup", resource=f"user:{user.id}")
        return AuthResult(user=user, token=session.token, expires_at=session.expires_at)

    def login(self, email: str, password: str) -> AuthResult:
        """
        Check credentials, revoke older sessions and issue a new one.

        Raises:
            Unauthenticated: unknown email or wrong password
        """
        row = self.storage.find_one(self.table, {"email": email.strip().lower()})
        if row is None or not self._verify_password(password, row):
            log_action(self.logger, "warning", "Login failed", action="login")
            raise Unauthenticated("Invalid credentials")

        self.sessions.revoke_all(row["id"])
        session = self.sessions.issue(row["id"])
        log_action(self.logger, "info", "User logged in",
                   user_id=str(row["id"]), action="login", resource=f"user:{row['id']}")
        return AuthResult(user=User.from_row(row), token=session.token, expires_at=session.expires_at)

    def logout(self, token: Optional[str]) -> LogoutResult:
        """Revoke the session; success is reported only once revocation is verified"""
        if not token:
            return LogoutResult(success=True, message="No active session")

        try:
            revoked = self.sessions.revoke(token)
        except StorageError:
            self.logger.exception("Session revocation failed")
            revoked = False

        if revoked:
            log_action(self.logger, "info", "User logged out", action="logout")
            return LogoutResult(success=True, message="Logged out successfully")
        return LogoutResult(success=False, message="Logout failed - session may still be active")

    def get_user(self, user_id: int) -> Optional[User]:
        try:
            row = self.storage.load(self.table, user_id)
        except StorageError as e:
            raise Internal("Failed to load user") from e
        return User.from_row(row) if row else None

    def validate_password(self, password: str) -> Tuple[bool, List[str]]:
        """Check a password against the policy; returns (ok, violations)"""
        policy = self.password_policy
        violations = []

        if len(password) < policy.min_length:
            violations.append(f"Password must be at least {policy.min_length} characters")
        if len(password) > policy.max_length:
            violations.append(f"Password must not exceed {policy.max_length} characters")
        if policy.require_lowercase and not re.search(r"[a-z]", password):
            violations.append("Password must contain at least one lowercase letter")
        if policy.require_uppercase and not re.search(r"[A-Z]", password):
            violations.append("Password must contain at least one uppercase letter")
        if policy.require_digit and not re.search(r"[0-9]", password):
            violations.append("Password must contain at least one number")
        if policy.require_special and not _SPECIAL.search(password):
            violations.append("Password must contain at least one special character")

        return len(violations) == 0, violations

    def _hash_password(self, password: str, salt: str) -> str:
        """Hash password with salt using scrypt"""
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _verify_password(self, password: str, row: Dict[str, Any]) -> bool:
        if not row.get("password_hash") or not row.get("password_salt"):
            return False
        expected = self._hash_password(password, row["password_salt"])
        return hmac.compare_digest(expected, row["password_hash"])
