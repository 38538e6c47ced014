from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.core.database.session import get_session
from authcore.user.repositories import UserRepository
from authcore.user.services import UserLookup


def get_user_lookup(session: AsyncSession = Depends(get_session)) -> UserLookup:
    return UserLookup(session=session, repository=UserRepository())
