from functools import lru_cache
import json
import logging
import os
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)


class RedisConfig(BaseModel):
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_DATABASE: str = "0"

    model_config = ConfigDict(extra="ignore")

    @property
    def dsn(self) -> str:
        return (
            f"redis://:"
            f"{self.REDIS_PASSWORD}@"
            f"{self.REDIS_HOST}:"
            f"{self.REDIS_PORT}/"
            f"{self.REDIS_DATABASE}"
        )


class SentryConfig(BaseModel):
    SENTRY_DSN: str | None = None
    SENTRY_ENV: str = "development"
    SENTRY_ENABLED: bool = False

    model_config = ConfigDict(extra="ignore")


class JWTConfig(BaseModel):
    JWT_SECRET_KEY: str

    ALGORITHM: str = "HS256"
    KEY_ID: str = "v1"
    ISSUER: str = "authcore"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(24 * 60, gt=0)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(7 * 24 * 60, gt=0)
    REFRESH_THRESHOLD_MINUTES: int = Field(60, gt=0)
    # Session cookies expire this much earlier than the refresh token.
    COOKIE_EXPIRY_MARGIN_MINUTES: int = Field(1, gt=0)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def check_cookie_margin(self) -> "JWTConfig":
        if self.COOKIE_EXPIRY_MARGIN_MINUTES >= self.REFRESH_TOKEN_EXPIRE_MINUTES:
            raise ValueError(
                "COOKIE_EXPIRY_MARGIN_MINUTES must be shorter than the refresh token lifetime"
            )
        return self


class CookieConfig(BaseModel):
    ACCESS_TOKEN_COOKIE_NAME: str = "access-token"
    REFRESH_TOKEN_COOKIE_NAME: str = "refresh-token"
    COOKIE_SECURE: bool = False

    model_config = ConfigDict(extra="ignore")


class SettingsStoreConfig(BaseModel):
    UPDATE_MAX_RETRIES: int = Field(5, gt=0)

    model_config = ConfigDict(extra="ignore")


class PostgresConfig(BaseModel):
    DB_ECHO: bool = False

    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "authcore"

    model_config = ConfigDict(extra="ignore")

    @property
    def dsn_async(self) -> str:
        return (
            f"postgresql+asyncpg://"
            f"{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/"
            f"{self.POSTGRES_DB}"
        )


class AppConfig(BaseModel):
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    TESTING: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_LEVEL_FILE: str = "WARNING"

    CORS_ALLOWED_ORIGINS: list[str] = Field(["*"])
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOWED_METHODS: list[str] = Field(["*"])
    CORS_ALLOWED_HEADERS: list[str] = Field(["*"])
    CORS_EXPOSE_HEADERS: list[str] = Field(["*"])

    PROJECT_NAME: str = "authcore"

    model_config = ConfigDict(extra="ignore")

    @field_validator(
        "CORS_ALLOWED_ORIGINS",
        "CORS_ALLOWED_METHODS",
        "CORS_ALLOWED_HEADERS",
        "CORS_EXPOSE_HEADERS",
        mode="before",
    )
    @classmethod
    def parse_cors_list(cls, v: Any) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip().startswith("[") and v.strip().endswith("]"):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except json.JSONDecodeError:
                pass
        sep = "," if "," in v else ";"
        return [item.strip() for item in v.split(sep) if item.strip()]


class Config(BaseModel):
    app: AppConfig
    jwt: JWTConfig
    cookies: CookieConfig
    redis: RedisConfig
    sentry: SentryConfig
    postgres: PostgresConfig
    settings_store: SettingsStoreConfig

    model_config = ConfigDict(extra="ignore")


@lru_cache
def get_settings() -> Config:
    """
    Cached settings factory. Override in tests via monkeypatching or dependency overrides.
    """
    env_filename = ".env.test" if os.getenv("TESTING") == "true" else ".env"
    env_file_values = dotenv_values(env_filename)
    merged_env: dict[str, Any] = {
        k: v
        for k, v in {**env_file_values, **dict(os.environ)}.items()
        if v is not None
    }

    return Config(
        app=AppConfig(**merged_env),
        jwt=JWTConfig(**merged_env),
        cookies=CookieConfig(**merged_env),
        redis=RedisConfig(**merged_env),
        sentry=SentryConfig(**merged_env),
        postgres=PostgresConfig(**merged_env),
        settings_store=SettingsStoreConfig(**merged_env),
    )


config = get_settings()
