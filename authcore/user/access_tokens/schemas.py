from datetime import datetime

from pydantic import Field

from authcore.core.schemas import Base


class UserAccessToken(Base):
    access_token: str
    description: str
    issued_at: datetime
    expires_at: datetime | None = None


class ListUserAccessTokensResponse(Base):
    access_tokens: list[UserAccessToken]


class CreateUserAccessTokenModel(Base):
    description: str = Field("", max_length=256)
    expires_at: datetime | None = None


class PruneUserAccessTokensResponse(Base):
    removed: int
