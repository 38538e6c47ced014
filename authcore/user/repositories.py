from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authcore.user.models import User
from loggers import get_logger

logger = get_logger(__name__)


class UserRepository:
    model = User

    async def get_single(self, session: AsyncSession, **filters: Any) -> User | None:
        query = select(self.model).filter_by(**filters).limit(1)
        result = await session.execute(query)
        return result.scalars().first()

    async def create(
        self, session: AsyncSession, data: dict[str, Any], commit: bool = False
    ) -> User:
        user = self.model(**data)
        session.add(user)
        if not commit:
            return user
        try:
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
        await session.refresh(user)
        logger.info("User %s created with role %s.", user.username, user.role)
        return user
