"""
Owner / context / boundary resolution.

Tokens reference entities by (type tag, id). Host applications register one
async loader per type tag; the engine only asks whether a loaded entity can
hold tokens.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from bearer.models.domain import EntityRef

EntityLoader = Callable[[str], Awaitable[Any | None]]


@runtime_checkable
class EntityReference(Protocol):
    """Anything that can be referenced by a token (owner, context, boundary)."""

    def entity_ref(self) -> EntityRef: ...


@runtime_checkable
class TokenHolder(EntityReference, Protocol):
    """A principal allowed to own tokens."""

    def can_hold_tokens(self) -> bool: ...


def to_ref(entity: EntityReference | EntityRef) -> EntityRef:
    if isinstance(entity, EntityRef):
        return entity
    return entity.entity_ref()


class EntityResolver:
    """Type tag -> async loader map."""

    def __init__(self, loaders: dict[str, EntityLoader] | None = None) -> None:
        self._loaders: dict[str, EntityLoader] = dict(loaders or {})

    def register(self, type_tag: str, loader: EntityLoader) -> None:
        self._loaders[type_tag] = loader

    def has(self, type_tag: str) -> bool:
        return type_tag in self._loaders

    async def load(self, ref: EntityRef) -> Any | None:
        """Load the referenced entity; None when the tag is unknown or the row is gone."""
        loader = self._loaders.get(ref.type)
        if loader is None:
            return None
        return await loader(ref.id)

    async def load_holder(self, ref: EntityRef) -> TokenHolder | None:
        """Load an entity and return it only if it can hold tokens."""
        entity = await self.load(ref)
        if entity is None or not isinstance(entity, TokenHolder):
            return None
        if not entity.can_hold_tokens():
            return None
        return entity
