"""
Tests for exception classes.

Covers typed attributes and messages of every failure kind.
"""

from datetime import UTC, datetime
from uuid import uuid4

import pytest

from bearer.exceptions import (
    BearerError,
    CannotDeriveTokenError,
    CannotRotateTokenError,
    GroupRefreshError,
    InvalidConfigurationError,
    InvalidDerivedAbilitiesError,
    InvalidDerivedExpirationError,
    MissingOwnerError,
    NotRegisteredError,
)


class TestBearerError:
    def test_all_errors_share_base(self):
        for error_type in (
            CannotDeriveTokenError,
            CannotRotateTokenError,
            GroupRefreshError,
            InvalidConfigurationError,
            InvalidDerivedAbilitiesError,
            InvalidDerivedExpirationError,
            MissingOwnerError,
            NotRegisteredError,
        ):
            assert issubclass(error_type, BearerError)

    def test_can_be_raised(self):
        with pytest.raises(BearerError):
            raise BearerError("boom")


class TestNotRegisteredError:
    def test_named(self):
        exc = NotRegisteredError("token hasher", "md5")
        assert exc.kind == "token hasher"
        assert exc.name == "md5"
        assert str(exc) == "Token hasher not registered: md5"

    def test_missing_default(self):
        assert str(NotRegisteredError("audit driver", None)) == "No default audit driver registered"


class TestDerivationErrors:
    def test_cannot_derive(self):
        token_id = uuid4()
        exc = CannotDeriveTokenError(token_id, "parent token is revoked")
        assert exc.token_id == token_id
        assert exc.reason == "parent token is revoked"
        assert str(token_id) in str(exc)

    def test_invalid_abilities_reports_excess(self):
        exc = InvalidDerivedAbilitiesError(["read", "write", "admin"], ["read"])
        assert exc.excess == ["admin", "write"]
        assert "admin, write" in str(exc)

    def test_invalid_expiration(self):
        parent = datetime(2026, 1, 1, tzinfo=UTC)
        requested = datetime(2026, 2, 1, tzinfo=UTC)
        exc = InvalidDerivedExpirationError(requested, parent)
        assert exc.requested == requested
        assert exc.parent == parent
        assert "2026-02-01" in str(exc)


class TestOtherErrors:
    def test_missing_owner(self):
        exc = MissingOwnerError("user", "42", "rotation")
        assert (exc.owner_type, exc.owner_id, exc.operation) == ("user", "42", "rotation")
        assert "user:42" in str(exc)

    def test_group_refresh(self):
        group_id = uuid4()
        assert GroupRefreshError(group_id).group_id == group_id

    def test_invalid_configuration(self):
        exc = InvalidConfigurationError("prefix missing")
        assert exc.message == "prefix missing"
        assert str(exc) == "Invalid configuration: prefix missing"

    def test_cannot_rotate(self):
        token_id = uuid4()
        exc = CannotRotateTokenError(token_id, "token is revoked")
        assert exc.token_id == token_id
        assert exc.reason == "token is revoked"
        assert str(exc) == f"Cannot rotate token {token_id}: token is revoked"
