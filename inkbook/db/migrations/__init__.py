"""Database migrations module.

Migrations are versioned SQL files in this directory (``001_initial.sql``)
applied in order. Each one runs in its own transaction together with the
row that records it in ``schema_migrations``.
"""

import logging
from pathlib import Path
from typing import Any

from inkbook.db.core import _get_connection

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    description TEXT
);
"""


async def get_current_version() -> int:
    """Get the current migration version from the database."""
    async with _get_connection() as conn:
        await conn.execute(_CREATE_TABLE)
        row = await (
            await conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_migrations")
        ).fetchone()
        return int(row[0]) if row and row[0] else 0


async def apply_migration(version: int, sql: str, description: str = "") -> bool:
    """Apply a single migration.

    Returns:
        True if migration was applied, False if already applied.
    """
    current = await get_current_version()
    if version <= current:
        logger.debug("Migration %d already applied", version)
        return False

    async with _get_connection() as conn:
        try:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    "INSERT INTO schema_migrations (version, description) VALUES (%s, %s)",
                    (version, description),
                )
        except Exception as e:
            logger.error("Failed to apply migration %d: %s", version, e)
            raise
    logger.info("Applied migration %d: %s", version, description)
    return True


def list_migrations() -> list[dict[str, Any]]:
    """All migration files shipped with the package, in version order."""
    out = []
    for path in sorted(MIGRATIONS_DIR.glob("*.sql")):
        # "001_initial.sql" -> 1
        try:
            version = int(path.stem.split("_")[0])
        except (ValueError, IndexError):
            continue
        out.append({
            "version": version,
            "filename": path.name,
            "description": "_".join(path.stem.split("_")[1:]),
            "path": path,
        })
    return out


async def get_pending_migrations() -> list[dict[str, Any]]:
    current = await get_current_version()
    return [m for m in list_migrations() if m["version"] > current]


async def run_migrations() -> int:
    """Run all pending migrations.

    Returns:
        Number of migrations applied.
    """
    pending = await get_pending_migrations()
    applied = 0

    for migration in pending:
        sql = migration["path"].read_text()
        if await apply_migration(
            migration["version"],
            sql,
            migration["description"],
        ):
            applied += 1

    if applied:
        logger.info("Applied %d migrations", applied)
    else:
        logger.debug("No pending migrations")

    return applied


async def ensure_schema() -> None:
    """Bring the schema up to date; safe to call on every startup."""
    current_version = await get_current_version()
    applied = await run_migrations()
    if applied > 0:
        logger.info("Schema updated from version %d to %d", current_version, await get_current_version())
    else:
        logger.debug("Schema is up to date at version %d", current_version)
