"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- In-memory SQLite engine and sessions (real SQL, real SAVEPOINTs)
- Settings with test defaults
- Token holders and a resolver that loads them
- A manager wired with an isolated metrics registry
"""

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any

import pytest
import pytest_asyncio
from prometheus_client import CollectorRegistry
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from bearer.config import Settings
from bearer.db.session import create_schema, create_session_factory
from bearer.models.domain import EntityRef
from bearer.observability.metrics import TokenMetrics
from bearer.services.manager import BearerManager
from bearer.services.owners import EntityResolver

# ============================================================================
# Entities
# ============================================================================


@dataclass
class User:
    """Principal that can hold tokens."""

    id: str
    active: bool = True

    def entity_ref(self) -> EntityRef:
        return EntityRef("user", self.id)

    def can_hold_tokens(self) -> bool:
        return self.active


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test with working SAVEPOINTs and foreign keys."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite transaction handling: let SQLAlchemy emit BEGIN itself
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = create_session_factory(engine)
    async with factory() as session:
        yield session


# ============================================================================
# Settings / Owners
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    """Settings with test defaults (no environment-specific values)."""
    return Settings(database_url="sqlite+aiosqlite://", log_format="console")


@pytest.fixture
def users() -> dict[str, User]:
    return {"u1": User("u1"), "u2": User("u2"), "inactive": User("inactive", active=False)}


@pytest.fixture
def user(users: dict[str, User]) -> User:
    return users["u1"]


@pytest.fixture
def other_user(users: dict[str, User]) -> User:
    return users["u2"]


@pytest.fixture
def resolver(users: dict[str, User]) -> EntityResolver:
    async def load_user(user_id: str) -> User | None:
        return users.get(user_id)

    return EntityResolver({"user": load_user})


# ============================================================================
# Manager Fixtures
# ============================================================================


@pytest.fixture
def metrics_registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def token_metrics(metrics_registry: CollectorRegistry) -> TokenMetrics:
    """Metrics bound to a private registry so tests never collide."""
    return TokenMetrics(metrics_registry)


@pytest.fixture
def manager_factory(
    session: AsyncSession,
    resolver: EntityResolver,
    token_metrics: TokenMetrics,
):
    """Build managers with custom settings or clocks against the same session."""

    def _create(settings: Settings | None = None, **kwargs: Any) -> BearerManager:
        return BearerManager(
            session,
            settings or Settings(database_url="sqlite+aiosqlite://", log_format="console"),
            resolver=resolver,
            metrics=token_metrics,
            **kwargs,
        )

    return _create


@pytest.fixture
def manager(manager_factory, settings: Settings) -> BearerManager:
    return manager_factory(settings)

