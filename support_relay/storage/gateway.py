"""
SQL implementation of the persistence gateway.

Each call runs in its own short session and commits before returning.
Database errors are logged and re-raised as ``PersistenceError``, the only
failure the relay core knows how to handle.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from support_relay.exceptions import PersistenceError
from support_relay.logging import logger
from support_relay.models.user import User
from support_relay.repositories.message_repository import MessageRepository
from support_relay.repositories.user_repository import UserRepository
from support_relay.schemas.identity import Identity
from support_relay.schemas.message import Message
from support_relay.storage.db import async_session

USER_FIELDS = frozenset(User.model_fields) - {"id", "created_at"}


class SQLPersistenceGateway:
    """
    Persistence gateway backed by the ``users`` and ``chat_messages`` tables.

    Args:
        session_factory: Callable returning a new AsyncSession; defaults to
            the application's session maker.
    """

    def __init__(
        self, session_factory: Callable[[], AsyncSession] | None = None
    ) -> None:
        self.session_factory = session_factory or async_session

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as ex:
                await session.rollback()
                logger.error(f"Database error during {operation}: {ex}")
                raise PersistenceError(f"{operation} failed") from ex

    async def find_identity_by_key(self, key: str) -> Identity | None:
        async with self._session("identity lookup") as session:
            user = await UserRepository(session).get_by_email(key)
        return user.to_identity() if user else None

    async def create_identity(self, fields: dict[str, Any]) -> Identity:
        async with self._session("identity creation") as session:
            user = await UserRepository(session).create(
                User(**_user_fields(fields))
            )
        return user.to_identity()

    async def update_identity(
        self, identity_id: str, fields: dict[str, Any]
    ) -> None:
        async with self._session("identity update") as session:
            repo = UserRepository(session)
            user = await repo.get_by_id(int(identity_id))
            if user is None:
                logger.warning(f"Cannot update unknown identity {identity_id}")
                return
            await repo.update(user, _user_fields(fields))

    async def append_message_record(self, message: Message) -> None:
        async with self._session("message record") as session:
            await MessageRepository(session).record(message)


def _user_fields(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = set(fields) - USER_FIELDS
    if unknown:
        raise PersistenceError(f"Unknown identity fields: {sorted(unknown)}")
    return dict(fields)
