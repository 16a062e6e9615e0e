from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context
import logging
import sys
from pathlib import Path

# Ensure the backend root (which contains the 'ticketswapper' package) is on sys.path even
# if Alembic is executed with CWD set to the 'alembic' directory inside the container.
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
# This line sets up loggers basically.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
logger = logging.getLogger("alembic.env")

# Add current app models metadata
from ticketswapper.models.base import Base  # noqa: E402
from ticketswapper.models import user, ticket, transaction, payout, notification  # noqa: F401,E402

target_metadata = Base.metadata

_ran = getattr(config, "_single_pass_done", False)
if _ran:
    # Suppress second invocation (framework quirk); first run already applied migrations.
    raise SystemExit(0)
setattr(config, "_single_pass_done", True)

# DATABASE_URL must be provided; reuse the driver-normalized URL of the app
from ticketswapper.db.session import SQLALCHEMY_DATABASE_URL  # noqa: E402

DB_URL = SQLALCHEMY_DATABASE_URL


def run_migrations_offline():
    url = DB_URL
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        {"sqlalchemy.url": DB_URL},
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
