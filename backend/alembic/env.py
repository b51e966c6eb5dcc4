from logging.config import fileConfig
import os
import re
import sys

from sqlalchemy import engine_from_config
from sqlalchemy import pool

from alembic import context

# backend/ holds the spa_booking package
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

from spa_booking.core.config import settings  # noqa: E402
from spa_booking.database import Base  # noqa: E402
from spa_booking import models  # noqa: E402,F401  registers every table

target_metadata = Base.metadata


def _db_url() -> str:
    return (
        os.getenv("DB_URL")
        or os.getenv("SQLALCHEMY_DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
        or settings.SQLALCHEMY_DATABASE_URL
    )


def _is_sqlite(url: str) -> bool:
    return str(url or "").strip().lower().startswith("sqlite")


def run_migrations_offline() -> None:
    """Emit SQL for the migrations without connecting."""
    url = _db_url()
    masked = re.sub(r"(postgres(?:ql)?\+?[^:]*://[^:/]+:)([^@]+)(@)", r"\1****\3", url)
    print(f"[alembic] Using DB URL (offline): {masked}")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=_is_sqlite(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {}) or {}
    url = _db_url()
    section["sqlalchemy.url"] = url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # SQLite cannot ALTER constraints in place
            render_as_batch=_is_sqlite(url),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
