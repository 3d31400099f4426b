"""
backend/migrations/env.py — Alembic environment.

The database URL comes from the same config classes the app uses
(backend/config.py loads .env and normalises postgres:// URLs), selected by
FLASK_ENV. Set FLASK_ENV=testing to migrate TEST_DATABASE_URL instead.
"""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Project root on sys.path so `backend.*` resolves without `pip install -e .`.
sys.path.insert(0, str(Path(__file__).resolve().parents[2]))

from backend.app.extensions import db  # noqa: E402
from backend.app.models import refresh_token, user  # noqa: E402,F401
from backend.config import ActiveConfig  # noqa: E402

target_metadata = db.metadata

db_url = ActiveConfig.SQLALCHEMY_DATABASE_URI
if not db_url:
    raise RuntimeError("No database URL configured; set DATABASE_URL.")

config = context.config
config.set_main_option("sqlalchemy.url", db_url.replace("%", "%%"))

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it (`alembic upgrade --sql`)."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
