"""Alembic environment for the registry and vault schemas."""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from fedauth.core.settings import DatabaseSettings
from fedauth.db.base import BaseEntity
from fedauth.db.models_keys import SigningKeyEntity
from fedauth.db.models_members import InviteEntity, MemberEntity, MemberRoleEntity
from fedauth.db.models_vaults import VaultEntity

_registered = (
    SigningKeyEntity,
    VaultEntity,
    MemberEntity,
    MemberRoleEntity,
    InviteEntity,
)

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = BaseEntity.metadata


def run_migrations_offline() -> None:
    """Emit SQL without a live connection."""
    url = config.get_main_option("sqlalchemy.url") or DatabaseSettings().async_url
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Run migrations against FEDAUTH_DB_* with an async engine."""
    engine = create_async_engine(DatabaseSettings().async_url)

    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
