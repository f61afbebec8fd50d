"""
Migration Runner - applies pending Alembic migrations for the token tables.

Host applications call run_migrations(settings) at startup; the prune CLI
can check status without applying anything.
"""

from pathlib import Path

from sqlalchemy import Engine, create_engine

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from bearer.config import Settings
from bearer.observability.logging import get_logger

logger = get_logger(__name__)

# Path to alembic.ini relative to project root
ALEMBIC_INI_PATH = Path(__file__).parent.parent.parent / "alembic.ini"


def sync_database_url(url: str) -> str:
    """
    Synchronous URL for the alembic command API.

    asyncpg URLs become psycopg2 URLs; aiosqlite URLs become plain sqlite.
    """
    return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")


def _alembic_config(settings: Settings) -> Config:
    alembic_cfg = Config(str(ALEMBIC_INI_PATH))
    sync_url = sync_database_url(settings.database_url)
    alembic_cfg.set_main_option("sqlalchemy.url", sync_url.replace("%", "%%"))
    return alembic_cfg


def _get_current_revision(engine: Engine) -> str | None:
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        return context.get_current_revision()


def _get_head_revision(alembic_cfg: Config) -> str | None:
    script = ScriptDirectory.from_config(alembic_cfg)
    return script.get_current_head()


def run_migrations(settings: Settings) -> None:
    """
    Upgrade the database to head if it is behind.

    Raises:
        RuntimeError: the upgrade failed (original error chained).
    """
    if not ALEMBIC_INI_PATH.exists():
        logger.warning("alembic_config_missing", path=str(ALEMBIC_INI_PATH))
        return

    try:
        alembic_cfg = _alembic_config(settings)
        engine = create_engine(sync_database_url(settings.database_url))

        try:
            current = _get_current_revision(engine)
            head = _get_head_revision(alembic_cfg)

            if current == head:
                logger.info("database_schema_up_to_date", revision=current)
                return

            logger.info("database_migration_started", from_revision=current, to_revision=head)
            command.upgrade(alembic_cfg, "head")
            logger.info("database_migration_completed", revision=_get_current_revision(engine))

        finally:
            engine.dispose()

    except Exception as e:
        logger.error("database_migration_failed", error=str(e))
        raise RuntimeError(f"Database migration failed: {e}") from e


def check_migrations_status(settings: Settings) -> dict[str, str | bool | None]:
    """Current and head revision plus a pending flag, or an error message."""
    if not ALEMBIC_INI_PATH.exists():
        return {"error": "Alembic config not found"}

    try:
        alembic_cfg = _alembic_config(settings)
        engine = create_engine(sync_database_url(settings.database_url))
        try:
            current = _get_current_revision(engine)
            head = _get_head_revision(alembic_cfg)
            return {
                "current_revision": current,
                "head_revision": head,
                "pending": current != head,
            }
        finally:
            engine.dispose()

    except Exception as e:
        return {"error": str(e)}
