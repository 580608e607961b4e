import asyncio
import os
import sys
from pathlib import Path

from logging.config import fileConfig
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context
from dotenv import load_dotenv

# parents: [0]=alembic/  [1]=lms/  [2]=migrations/  [3]=repo_root/
repo_root = Path(__file__).resolve().parents[3]
sys.path.insert(0, str(repo_root / "shared"))
sys.path.insert(0, str(repo_root / "services" / "lms"))
load_dotenv(repo_root / ".env")

from shared.database.postgres import Base  # noqa: E402

import app.models  # noqa: E402, F401

target_metadata = Base.metadata

# Every table registered by app.models; anything else in the database is left alone.
LMS_TABLES = frozenset(target_metadata.tables)
VERSION_TABLE = "lms_alembic_version"


def include_object(object, name, type_, reflected, compare_to):
    if type_ == "table":
        return name in LMS_TABLES
    if type_ in ("index", "unique_constraint", "foreign_key_constraint"):
        table = getattr(object, "table", None)
        return table is None or table.name in LMS_TABLES
    return True


config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

url = os.environ.get("LMS_DATABASE_URL") or config.get_main_option("sqlalchemy.url")
if not url:
    raise RuntimeError("LMS_DATABASE_URL is not set")
# ConfigParser interpolates %, and URL-encoded passwords contain it
config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))

CONFIGURE_OPTS = {
    "target_metadata": target_metadata,
    "include_object": include_object,
    "version_table": VERSION_TABLE,
    "compare_type": True,
}


def run_migrations_offline() -> None:
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **CONFIGURE_OPTS,
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, **CONFIGURE_OPTS)
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
