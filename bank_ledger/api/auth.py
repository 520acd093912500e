"""
Banking system container and authentication dependencies
"""

from datetime import timedelta
from typing import Optional

from fastapi import Depends, Request

from ..config import BankConfig
from ..encryption import AESGCMEncryptionProvider, EncryptionConfigError
from ..ledger import LedgerEngine
from ..logging_config import get_logger
from ..money import to_minor_units
from ..schema import ALL_TABLES
from ..sessions import SessionAuthority, SessionIdentity
from ..storage import create_storage
from ..users import UserManager


logger = get_logger("bank_ledger.api")


class BankingSystem:
    """
    All components wired to one shared storage handle.

    Created once per process and closed on shutdown.
    """

    def __init__(self, config: BankConfig):
        self.config = config
        self.storage = create_storage(config.database_url)
        self.storage.ensure_schema(ALL_TABLES)

        self.ledger = LedgerEngine(
            self.storage,
            max_account_number_attempts=config.account_number_max_attempts
        )
        self.sessions = SessionAuthority(
            self.storage,
            secret=config.jwt_secret,
            algorithm=config.jwt_algorithm,
            ttl=timedelta(days=config.session_ttl_days),
            expiry_buffer=timedelta(seconds=config.session_expiry_buffer_seconds)
        )
        self.users = UserManager(
            self.storage,
            self.sessions,
            self._create_encryption_provider(),
            ssn_pepper=config.ssn_pepper,
            minimum_age=config.minimum_signup_age
        )
        self.max_funding_amount = to_minor_units(config.max_funding_amount)

    def _create_encryption_provider(self) -> Optional[AESGCMEncryptionProvider]:
        """PII encryption provider; signup is refused while it is not configured"""
        try:
            return AESGCMEncryptionProvider(self.config.encryption_key)
        except EncryptionConfigError as e:
            logger.warning(f"PII encryption unavailable, signup disabled: {e}")
            return None

    def close(self) -> None:
        self.storage.close()


def get_banking_system(request: Request) -> BankingSystem:
    return request.app.state.banking_system


def extract_session_token(request: Request, cookie_name: str) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie"""
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(cookie_name) or None


def get_current_identity(
    request: Request,
    system: BankingSystem = Depends(get_banking_system)
) -> SessionIdentity:
    """Authenticated caller; raises Unauthenticated otherwise"""
    token = extract_session_token(request, system.config.session_cookie_name)
    return system.sessions.validate(token)
