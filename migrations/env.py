"""Alembic environment for the LiteNotes schema."""
from __future__ import annotations

import os
import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool

# Make src/ importable when alembic is run from a source checkout.
SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from litenotes.core.settings import settings  # noqa: E402
from litenotes.db.session import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    # Leave application loggers alone when migrations run in-process.
    fileConfig(config.config_file_name, disable_existing_loggers=False)

if os.getenv("ALEMBIC_URL"):
    config.set_main_option("sqlalchemy.url", os.environ["ALEMBIC_URL"])
elif not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.database_url)


def include_object(obj, name, type_, reflected, compare_to):
    """Skip Alembic's version table during autogenerate."""
    return not (type_ == "table" and name == "alembic_version")


def _configure(**kwargs) -> None:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds tables.
    url = config.get_main_option("sqlalchemy.url") or ""
    context.configure(
        target_metadata=Base.metadata,
        include_object=include_object,
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_offline() -> None:
    """Emit SQL for the pending revisions without a database connection."""
    _configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )


def run_online() -> None:
    """Apply pending revisions over a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _configure(connection=connection)


if context.is_offline_mode():
    run_offline()
else:
    run_online()
