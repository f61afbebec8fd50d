"""
Derivation hierarchy index.

Each token stores its parent pointer and cached depth; transitive descendant
queries run as a recursive CTE over access_tokens.parent_id.
"""

from typing import Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bearer.db.models import AccessToken


class HierarchyIndex(Protocol):
    """Narrow interface the revocation and derivation engines depend on."""

    async def add(self, child: AccessToken, parent: AccessToken) -> None: ...

    async def descendants_of(self, token: AccessToken) -> list[UUID]: ...


class AdjacencyListHierarchy:
    """HierarchyIndex backed by the parent_id/depth columns."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, child: AccessToken, parent: AccessToken) -> None:
        child.parent_id = parent.id
        child.depth = parent.depth + 1
        await self.session.flush()

    async def descendants_of(self, token: AccessToken) -> list[UUID]:
        """Ids of every transitive descendant (the token itself excluded)."""
        tree = (
            select(AccessToken.id)
            .where(AccessToken.parent_id == token.id)
            .cte("descendants", recursive=True)
        )
        tree = tree.union_all(select(AccessToken.id).where(AccessToken.parent_id == tree.c.id))
        result = await self.session.execute(select(tree.c.id))
        return list(result.scalars().all())
