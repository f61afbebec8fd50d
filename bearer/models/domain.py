"""
Domain Models - Immutable dataclasses passed between the lifecycle services.

Plaintext secrets only ever travel inside NewAccessToken and NewAccessTokenGroup.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from bearer.db.models import AccessToken, AccessTokenGroup


@dataclass(frozen=True)
class EntityRef:
    """(type tag, id) reference to an owner, context or boundary entity."""

    type: str
    id: str

    def __post_init__(self) -> None:
        """Validate reference fields."""
        if not self.type:
            raise ValueError("Entity type tag cannot be empty")
        if not self.id:
            raise ValueError("Entity id cannot be empty")

    def __str__(self) -> str:
        return f"{self.type}:{self.id}"


@dataclass(frozen=True)
class TokenComponents:
    """Best-effort decomposition of a plaintext secret."""

    prefix: str
    environment: str
    secret: str
    full_token: str


@dataclass(frozen=True)
class NewAccessToken:
    """A freshly persisted token plus its plaintext secret (shown once)."""

    access_token: "AccessToken"
    plain_text_token: str

    def __repr__(self) -> str:
        return f"NewAccessToken(access_token={self.access_token!r}, plain_text_token='***')"


@dataclass(frozen=True)
class NewAccessTokenGroup:
    """A freshly persisted group plus the plaintext secret of each member, keyed by type."""

    group: "AccessTokenGroup"
    plain_text_tokens: dict[str, str]

    def __repr__(self) -> str:
        return f"NewAccessTokenGroup(group={self.group!r}, types={sorted(self.plain_text_tokens)})"


@dataclass(frozen=True)
class RevocationOutcome:
    """What a revocation strategy touched."""

    mode: str
    affected_count: int
    token_ids: tuple[UUID, ...] = ()
    group_id: UUID | None = None
    details: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class PruneResult:
    """Rows deleted by a pruning run, with a human-readable summary."""

    count: int
    summary: str
