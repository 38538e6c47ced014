from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.errors.exceptions import InstanceNotFoundException
from authcore.user.models import User
from authcore.user.repositories import UserRepository


class UserLookup:
    """Resolves user records for the authentication layer."""

    def __init__(self, session: AsyncSession, repository: UserRepository) -> None:
        self.session = session
        self.repository = repository

    async def get_by_id(self, user_id: int) -> User:
        user = await self.repository.get_single(self.session, id=user_id)
        if user is None:
            raise InstanceNotFoundException("User not found", {"user_id": user_id})
        return user

    async def get_by_username(self, username: str) -> User:
        user = await self.repository.get_single(self.session, username=username)
        if user is None:
            raise InstanceNotFoundException(
                f"Fail to find user {username}", {"username": username}
            )
        return user
