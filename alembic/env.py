"""Alembic environment for the TAK ledger schema.

Migrations are hand-written raw SQL (CHECK constraints, partial unique
indexes, the snapshot-freeze trigger), so there is no target metadata.

The URL comes from config.settings unless overridden on the command line,
e.g. ``alembic -x db_url=postgresql+asyncpg://.../tak_test upgrade head``.
Each revision runs in its own transaction so a failing seed revision does
not roll back the schema revisions before it.
"""
import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection, make_url
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from config.settings import settings

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

DB_URL: str = context.get_x_argument(as_dictionary=True).get("db_url", settings.DATABASE_URL)

_CONFIGURE_OPTS = {
    "target_metadata": None,
    "transaction_per_migration": True,
}


def _migrate(**opts: object) -> None:
    context.configure(**_CONFIGURE_OPTS, **opts)
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    _migrate(connection=connection)


async def _apply_online() -> None:
    # Single-use connection; the app's pool settings do not apply here
    engine = create_async_engine(DB_URL, poolclass=NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


logger.info("Migrating %s", make_url(DB_URL).render_as_string(hide_password=True))
if context.is_offline_mode():
    _migrate(url=DB_URL, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    asyncio.run(_apply_online())
