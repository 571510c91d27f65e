"""
Alembic Environment Configuration
Configured for SQLAlchemy with StartupVista models.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context

from startupvista.core.config import get_settings
from startupvista.core.database import Base
from startupvista.models.models import (  # noqa: F401
    ConsultantProfile,
    InvestorProfile,
    Post,
    PostInterest,
    StartupProfile,
    User,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Migrations run on the sync driver for the same database
settings = get_settings()
sync_url = settings.database_url
if "+aiosqlite" in sync_url:
    sync_url = sync_url.replace("+aiosqlite", "")
elif "+asyncpg" in sync_url:
    sync_url = sync_url.replace("+asyncpg", "+psycopg2")
config.set_main_option("sqlalchemy.url", sync_url)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=sync_url.startswith("sqlite"),
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
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite cannot ALTER most columns in place
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
