import sys
from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine

sys.path.append(".")

from decisionlog import models  # noqa: E402,F401
from decisionlog.config import settings  # noqa: E402
from decisionlog.database import Base  # noqa: E402

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""

    provided_connection = config.attributes.get("connection")

    if provided_connection is not None:
        connection = provided_connection
        should_close = False
    else:
        connectable = create_engine(settings.database_url, future=True)
        connection = connectable.connect()
        should_close = True

    try:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )

        with context.begin_transaction():
            context.run_migrations()
    finally:
        if should_close:
            connection.close()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
