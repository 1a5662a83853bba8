import os
import sys
from logging.config import fileConfig

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context
from remindme.database import Base
from remindme import models  # noqa: F401
from remindme.config import settings

config = context.config

# DATABASE_URL from the environment or .env wins over alembic.ini
database_url = os.getenv("DATABASE_URL") or getattr(settings, "DATABASE_URL", None)

if database_url:
    database_url = database_url.strip().strip('"').strip("'")
    config.set_main_option("sqlalchemy.url", database_url)
else:
    print("WARNING: No DATABASE_URL found; using alembic.ini", file=sys.stderr)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, emitting SQL to the script output."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
