from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from support_relay.models.user import User
from support_relay.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Queries over the ``users`` table."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, User)

    async def get_by_email(self, email: str) -> User | None:
        """
        Get a user by lower-cased e-mail.

        Args:
            email: E-mail as normalised by the identity binder.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.lower())
        result = await self.session.exec(stmt)
        return result.first()

