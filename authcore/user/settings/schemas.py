from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class UserSettingKey(StrEnum):
    ACCESS_TOKENS = "access_tokens"


class AccessTokenRecord(BaseModel):
    """Persisted personal access token. Issue and expiry times live in the token."""

    token: str
    description: str = ""

    model_config = ConfigDict(frozen=True, extra="ignore")


class AccessTokensUserSetting(BaseModel):
    access_tokens: list[AccessTokenRecord] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
