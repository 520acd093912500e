"""
Tests for signup, login and logout
"""

from dataclasses import replace
from datetime import date

import pytest

from bank_ledger.encryption import AESGCMEncryptionProvider, is_encrypted
from bank_ledger.errors import Conflict, Internal, Unauthenticated, ValidationFailed
from bank_ledger.schema import ALL_TABLES, SESSIONS, USERS
from bank_ledger.sessions import SessionAuthority
from bank_ledger.storage import InMemoryStorage
from bank_ledger.users import SignupData, UserManager, calculate_age


PEPPER = "pepper"


def signup_data(**overrides):
    data = SignupData(
        email="Jane.Doe@example.com",
        password="Str0ng!Pass",
        first_name="Jane",
        last_name="Doe",
        phone_number="5551234567",
        date_of_birth="1990-05-17",
        ssn="123456789",
        address="1 Main St",
        city="Springfield",
        state="il",
        zip_code="62701",
    )
    return replace(data, **overrides)


class TestSignup:
    """Registering users"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.storage.ensure_schema(ALL_TABLES)
        self.sessions = SessionAuthority(self.storage, secret="test-secret")
        self.encryption = AESGCMEncryptionProvider("00" * 32)
        self.users = UserManager(self.storage, self.sessions, self.encryption, ssn_pepper=PEPPER)

    def test_signup_creates_user_and_session(self):
        result = self.users.signup(signup_data())

        assert result.user.email == "jane.doe@example.com"
        assert result.user.state == "IL"
        assert self.sessions.validate(result.token).user_id == result.user.id

    def test_ssn_is_encrypted_at_rest(self):
        result = self.users.signup(signup_data())
        row = self.storage.load(USERS.name, result.user.id)

        assert is_encrypted(row["ssn_encrypted"])
        assert self.encryption.decrypt(row["ssn_encrypted"]) == "123456789"
        assert "123456789" not in str(row)
        assert not hasattr(result.user, "ssn_encrypted")

    def test_password_is_hashed(self):
        result = self.users.signup(signup_data())
        row = self.storage.load(USERS.name, result.user.id)
        assert row["password_hash"] != "Str0ng!Pass"
        assert row["password_salt"]

    def test_duplicate_email(self):
        self.users.signup(signup_data())
        with pytest.raises(Conflict) as exc_info:
            self.users.signup(signup_data(email="JANE.DOE@example.com", ssn="987654321"))
        assert exc_info.value.message == "User with this email already exists"

    def test_duplicate_ssn(self):
        self.users.signup(signup_data())
        with pytest.raises(Conflict) as exc_info:
            self.users.signup(signup_data(email="other@example.com"))
        assert exc_info.value.message == "User with this SSN already exists"

    @pytest.mark.parametrize("password", [
        "Sh0rt!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSpecial123", "A1!" + "a" * 70
    ])
    def test_weak_passwords(self, password):
        with pytest.raises(ValidationFailed):
            self.users.signup(signup_data(password=password))
        assert self.storage.count(USERS.name) == 0

    def test_under_age(self):
        today = date.today()
        recent = date(today.year - 17, 1, 1).isoformat()
        with pytest.raises(ValidationFailed) as exc_info:
            self.users.signup(signup_data(date_of_birth=recent))
        assert "at least 18" in exc_info.value.message

    def test_bad_date_and_ssn(self):
        with pytest.raises(ValidationFailed):
            self.users.signup(signup_data(date_of_birth="17/05/1990"))
        with pytest.raises(ValidationFailed):
            self.users.signup(signup_data(ssn="12345678"))

    def test_signup_refused_without_encryption(self):
        users = UserManager(self.storage, self.sessions, None, ssn_pepper=PEPPER)
        with pytest.raises(Internal) as exc_info:
            users.signup(signup_data())
        assert exc_info.value.message == "PII encryption is not configured"
        assert self.storage.count(USERS.name) == 0

    def test_calculate_age(self):
        assert calculate_age(date(2000, 6, 15), today=date(2018, 6, 14)) == 17
        assert calculate_age(date(2000, 6, 15), today=date(2018, 6, 15)) == 18


class TestLoginLogout:
    """Credentials and session lifecycle"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.storage.ensure_schema(ALL_TABLES)
        self.sessions = SessionAuthority(self.storage, secret="test-secret")
        self.users = UserManager(
            self.storage, self.sessions, AESGCMEncryptionProvider("00" * 32), ssn_pepper=PEPPER
        )
        self.signup = self.users.signup(signup_data())

    def test_login(self):
        result = self.users.login("jane.doe@example.com", "Str0ng!Pass")
        assert result.user.id == self.signup.user.id
        assert self.sessions.validate(result.token).user_id == result.user.id

    def test_login_revokes_previous_sessions(self):
        """Only the newest login stays valid"""
        result = self.users.login(" Jane.Doe@example.com ", "Str0ng!Pass")

        with pytest.raises(Unauthenticated):
            self.sessions.validate(self.signup.token)
        assert self.sessions.validate(result.token).user_id == result.user.id
        assert self.storage.count(SESSIONS.name) == 1

    def test_bad_credentials(self):
        for email, password in (("jane.doe@example.com", "Wr0ng!Pass"), ("nobody@example.com", "Str0ng!Pass")):
            with pytest.raises(Unauthenticated) as exc_info:
                self.users.login(email, password)
            assert exc_info.value.message == "Invalid credentials"
        # The existing session survives failed attempts
        assert self.sessions.validate(self.signup.token)

    def test_logout(self):
        result = self.users.logout(self.signup.token)
        assert result.success
        assert result.message == "Logged out successfully"
        with pytest.raises(Unauthenticated):
            self.sessions.validate(self.signup.token)

    def test_logout_without_session(self):
        result = self.users.logout(None)
        assert result.success
        assert result.message == "No active session"

    def test_logout_unknown_token(self):
        result = self.users.logout("stale-token")
        assert not result.success
        assert result.message == "Logout failed - session may still be active"
