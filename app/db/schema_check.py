import asyncio
from typing import List

import structlog
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

import app.core.models  # noqa: F401  registers the tables on Base.metadata
from app.core.logging import setup_logging
from app.db.session import Base, engine

logger = structlog.get_logger(__name__)

# Dependency order: tasks before task_deliveries (FK).
REQUIRED_TABLES: List[str] = [
    "profiles",
    "tasks",
    "task_deliveries",
    "notifications",
]


async def ensure_tables(db_engine: AsyncEngine) -> List[str]:
    """
    Ensure that all required tables exist in the connected database.
    Missing tables are created; existing ones are left untouched. Returns the names created.
    """
    async with db_engine.begin() as conn:
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = [name for name in REQUIRED_TABLES if name not in existing]
        if missing:
            tables = [Base.metadata.tables[name] for name in missing]
            await conn.run_sync(lambda sync_conn: Base.metadata.create_all(sync_conn, tables=tables))

    if missing:
        logger.info("schema_tables_created", tables=missing)
    else:
        logger.info("schema_tables_present", tables=REQUIRED_TABLES)
    return missing


async def main() -> None:
    setup_logging()
    await ensure_tables(engine)


if __name__ == "__main__":
    asyncio.run(main())
