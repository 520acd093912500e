"""
Tests for session issuing, validation and revocation
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from bank_ledger.errors import Unauthenticated
from bank_ledger.schema import ALL_TABLES, SESSIONS
from bank_ledger.sessions import SessionAuthority
from bank_ledger.storage import InMemoryStorage


SECRET = "test-secret"


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


class TestSessionAuthority:
    """Session lifecycle"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.storage.ensure_schema(ALL_TABLES)
        self.clock = FakeClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))
        self.sessions = SessionAuthority(
            self.storage,
            secret=SECRET,
            ttl=timedelta(hours=1),
            expiry_buffer=timedelta(seconds=60),
            clock=self.clock
        )

    def test_issue_and_validate(self):
        issued = self.sessions.issue(7)

        assert issued.user_id == 7
        assert issued.expires_at == self.clock.now + timedelta(hours=1)
        assert self.sessions.validate(issued.token).user_id == 7
        assert self.storage.count(SESSIONS.name) == 1

    def test_tokens_are_unique(self):
        first = self.sessions.issue(7)
        second = self.sessions.issue(7)
        assert first.token != second.token

    def test_missing_token(self):
        for token in (None, ""):
            with pytest.raises(Unauthenticated) as exc_info:
                self.sessions.validate(token)
            assert exc_info.value.message == "Authentication required"

    def test_forged_token(self):
        """A token signed with another secret is rejected"""
        issued = self.sessions.issue(7)
        claims = jwt.decode(issued.token, SECRET, algorithms=["HS256"], options={"verify_exp": False})
        forged = jwt.encode(claims, "another-secret", algorithm="HS256")

        with pytest.raises(Unauthenticated) as exc_info:
            self.sessions.validate(forged)
        assert exc_info.value.message == "Invalid session"

        with pytest.raises(Unauthenticated):
            self.sessions.validate("not-a-jwt")

    def test_signed_but_unknown_token(self):
        """Well-signed tokens without a session row are rejected"""
        token = jwt.encode({"user_id": 7, "jti": "x"}, SECRET, algorithm="HS256")
        with pytest.raises(Unauthenticated) as exc_info:
            self.sessions.validate(token)
        assert exc_info.value.message == "Invalid session"

    def test_valid_outside_buffer(self):
        issued = self.sessions.issue(7)
        # 61 seconds of lifetime left
        self.clock.advance(timedelta(hours=1) - timedelta(seconds=61))
        assert self.sessions.validate(issued.token).user_id == 7

    def test_expired_within_buffer(self):
        """Sessions expire slightly before their recorded expiry"""
        issued = self.sessions.issue(7)
        self.clock.advance(timedelta(hours=1) - timedelta(seconds=30))

        with pytest.raises(Unauthenticated) as exc_info:
            self.sessions.validate(issued.token)
        assert exc_info.value.message == "Session expired"

    def test_expired_after_expiry(self):
        issued = self.sessions.issue(7)
        self.clock.advance(timedelta(days=1))
        with pytest.raises(Unauthenticated):
            self.sessions.validate(issued.token)

    def test_revoke(self):
        issued = self.sessions.issue(7)

        assert self.sessions.revoke(issued.token)
        with pytest.raises(Unauthenticated):
            self.sessions.validate(issued.token)

        # Nothing left to revoke
        assert not self.sessions.revoke(issued.token)

    def test_revoke_all(self):
        first = self.sessions.issue(7)
        second = self.sessions.issue(7)
        other = self.sessions.issue(8)

        assert self.sessions.revoke_all(7) == 2
        for token in (first.token, second.token):
            with pytest.raises(Unauthenticated):
                self.sessions.validate(token)
        assert self.sessions.validate(other.token).user_id == 8
        assert self.sessions.revoke_all(7) == 0
