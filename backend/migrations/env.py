from logging.config import fileConfig
from sqlalchemy import engine_from_config, pool
from alembic import context

# load .env if present
from dotenv import load_dotenv
load_dotenv()

from materials_engine.core.settings import get_settings
from materials_engine.db.base import Base
import materials_engine.models  # noqa: F401

config = context.config

# settings (DATABASE_URL or DB_*) win over the ini file
config.set_main_option("sqlalchemy.url", get_settings().database_url)

# logging config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline():
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        compare_server_default=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            compare_server_default=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
