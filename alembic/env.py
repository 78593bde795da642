from __future__ import annotations

from alembic import context
from sqlalchemy import create_engine

from coach_engine.config import get_database_url
from coach_engine.models import Base

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    context.configure(url=get_database_url(), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    engine = create_engine(get_database_url())
    with engine.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
