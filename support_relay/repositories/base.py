"""
Base repository with the CRUD operations shared by the relay's tables.

Repositories own every query against one table and never commit; the
caller that opened the session decides when the unit of work ends.

Example:
    ```python
    from support_relay.repositories.user_repository import UserRepository
    from support_relay.storage.db import async_session

    async with async_session() as session:
        repo = UserRepository(session)
        user = await repo.get_by_email("jane@example.com")
        await session.commit()
    ```
"""

from typing import Any, Generic, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from support_relay.logging import logger

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    CRUD operations over a single SQLModel table.

    Attributes:
        session: The database session for executing queries.
        model: The SQLModel class this repository manages.
    """

    def __init__(self, session: AsyncSession, model: Type[T]):
        self.session = session
        self.model = model

    async def get_by_id(self, id: int) -> T | None:
        return await self.session.get(self.model, id)

    async def create(self, entity: T) -> T:
        """
        Insert a row and return it with generated fields populated.

        Raises:
            SQLAlchemyError: If the insert fails; the session is rolled back.
        """
        try:
            self.session.add(entity)
            await self.session.flush()
            await self.session.refresh(entity)
            return entity
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error creating {self.model.__name__}: {e}")
            raise

    async def update(self, entity: T, fields: dict[str, Any]) -> T:
        """
        Apply ``fields`` to a loaded row and flush the change.

        Raises:
            SQLAlchemyError: If the update fails; the session is rolled back.
        """
        try:
            for key, value in fields.items():
                setattr(entity, key, value)
            self.session.add(entity)
            await self.session.flush()
            await self.session.refresh(entity)
            return entity
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Error updating {self.model.__name__}: {e}")
            raise
