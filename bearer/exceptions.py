"""
Exception Classes - Strongly typed exception hierarchy.

Every failure kind carries typed attributes so callers can branch on the
specific cause instead of parsing messages.
"""

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID


class BearerError(Exception):
    """Base exception for all token engine errors."""

    pass


class NotRegisteredError(BearerError):
    """Raised when an unknown strategy/generator/hasher/driver/type is requested."""

    def __init__(self, kind: str, name: str | None) -> None:
        self.kind = kind
        self.name = name
        if name is None:
            message = f"No default {kind} registered"
        else:
            message = f"{kind.capitalize()} not registered: {name}"
        super().__init__(message)


class CannotDeriveTokenError(BearerError):
    """Raised when a parent token is revoked, expired, or at maximum depth."""

    def __init__(self, token_id: UUID | None, reason: str) -> None:
        self.token_id = token_id
        self.reason = reason
        super().__init__(f"Cannot derive from token {token_id}: {reason}")


class CannotRotateTokenError(BearerError):
    """Raised when rotating a token whose revocation has already taken effect."""

    def __init__(self, token_id: UUID | None, reason: str) -> None:
        self.token_id = token_id
        self.reason = reason
        super().__init__(f"Cannot rotate token {token_id}: {reason}")


class InvalidDerivedAbilitiesError(BearerError):
    """Raised when requested abilities are not a subset of the parent's abilities."""

    def __init__(self, requested: Iterable[str], allowed: Iterable[str]) -> None:
        self.requested = list(requested)
        self.allowed = list(allowed)
        excess = sorted(set(self.requested) - set(self.allowed))
        self.excess = excess
        super().__init__(
            f"Derived abilities exceed parent abilities: {', '.join(excess) or '(none)'}"
        )


class InvalidDerivedExpirationError(BearerError):
    """Raised when the requested expiration is later than the parent's."""

    def __init__(self, requested: datetime, parent: datetime) -> None:
        self.requested = requested
        self.parent = parent
        super().__init__(
            f"Derived expiration {requested.isoformat()} exceeds parent expiration "
            f"{parent.isoformat()}"
        )


class MissingOwnerError(BearerError):
    """Raised when a token's owner is absent or cannot hold tokens."""

    def __init__(self, owner_type: str, owner_id: str, operation: str) -> None:
        self.owner_type = owner_type
        self.owner_id = owner_id
        self.operation = operation
        super().__init__(
            f"Owner {owner_type}:{owner_id} is missing or cannot hold tokens ({operation})"
        )


class GroupRefreshError(BearerError):
    """Raised when a token group cannot be reloaded right after creation."""

    def __init__(self, group_id: UUID | None) -> None:
        self.group_id = group_id
        super().__init__(f"Token group {group_id} could not be reloaded after creation")


class InvalidConfigurationError(BearerError):
    """Raised when a declarative token type or strategy definition is invalid."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Invalid configuration: {message}")
