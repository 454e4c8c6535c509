"""
Alembic environment for the lesson engine's tables.

The engine shares its database with the tutoring platform. Tables that exist
in the database but are not declared in ``tutoring.tables`` belong to the
platform and are left out of autogenerate comparisons.
"""

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

# .env.local overrides .env
load_dotenv(project_root / ".env")
load_dotenv(project_root / ".env.local", override=True)

from tutoring.database import get_sync_database_url
from tutoring.tables import metadata

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = metadata

VERSION_TABLE = "lesson_engine_alembic_version"


def include_object(obj, name, type_, reflected, compare_to) -> bool:
    """Skip platform-owned tables that this package does not declare."""
    if type_ == "table" and reflected and compare_to is None:
        return False
    return True


def _configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        version_table=VERSION_TABLE,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL for the pending migrations without connecting."""
    _configure(
        url=get_sync_database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply the pending migrations to the database."""
    connectable = create_engine(get_sync_database_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
