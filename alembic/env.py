"""
Alembic environment for the RentFlow schema.

The database URL and driver options come from the same YAML settings file the
application reads (CONFIG), never from alembic.ini.
"""

import asyncio
import os
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from alembic import context

# Settings load on import; fall back to the local config for developer runs
os.environ.setdefault("CONFIG", "resources/config/local.yaml")

from rentflow_backend.config import settings  # noqa: E402
from rentflow_backend.database import Base, build_engine_kwargs, load_models  # noqa: E402

load_models()

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
database_url = settings.database_url

# SQLite cannot ALTER most constraints in place
render_as_batch = database_url.startswith("sqlite")


def configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=render_as_batch,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit the migration SQL as a script instead of running it."""
    configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine_kwargs = build_engine_kwargs(database_url)
    engine_kwargs["poolclass"] = pool.NullPool
    engine_kwargs.pop("pool_pre_ping", None)
    engine_kwargs.pop("pool_recycle", None)

    connectable = create_async_engine(database_url, **engine_kwargs)
    try:
        async with connectable.connect() as connection:
            await connection.run_sync(do_run_migrations)
    finally:
        await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
