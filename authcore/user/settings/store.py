"""
Per-user key/value settings backed by Redis.

Each setting is one JSON document under ``user_setting:{user_id}:{key}``.
Values are only ever replaced whole. ``update`` runs the read-modify-write
cycle as an optimistic transaction (WATCH/MULTI/EXEC): if another writer
touches the key between the read and the write, the cycle is repeated from a
fresh read, up to ``max_retries`` attempts.
"""

from collections.abc import Callable
import json
from typing import Any

from fastapi import Depends
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from authcore.core.errors.exceptions import StoreFailureException
from authcore.core.redis.dependencies import get_redis_client
from authcore.main.config import config
from authcore.user.settings.schemas import (
    AccessTokenRecord,
    AccessTokensUserSetting,
    UserSettingKey,
)
from loggers import get_logger

logger = get_logger(__name__)

AccessTokensMutation = Callable[[list[AccessTokenRecord]], list[AccessTokenRecord]]


class UserSettingStore:
    def __init__(self, redis_client: Redis, max_retries: int = 5) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.redis_client = redis_client
        self.max_retries = max_retries

    @staticmethod
    def build_key(user_id: int, key: UserSettingKey | str) -> str:
        return f"user_setting:{user_id}:{key}"

    async def get(self, user_id: int, key: UserSettingKey | str) -> Any | None:
        redis_key = self.build_key(user_id, key)
        try:
            raw = await self.redis_client.get(redis_key)
        except RedisError as exc:
            raise StoreFailureException(
                "Failed to read user setting", {"user_id": user_id, "key": str(key)}
            ) from exc
        return self._decode(raw, redis_key)

    async def put(self, user_id: int, key: UserSettingKey | str, value: Any) -> None:
        redis_key = self.build_key(user_id, key)
        try:
            await self.redis_client.set(redis_key, self._encode(value))
        except RedisError as exc:
            raise StoreFailureException(
                "Failed to write user setting", {"user_id": user_id, "key": str(key)}
            ) from exc

    async def update(
        self,
        user_id: int,
        key: UserSettingKey | str,
        mutate: Callable[[Any | None], Any],
    ) -> Any:
        """
        Atomically replace a setting with ``mutate(current)``.

        Args:
            user_id: Owner of the setting
            key: Setting key
            mutate: Pure function from the freshly read value (None when unset)
                to the value to store. It may run once per attempt.

        Returns:
            The value that was written.

        Raises:
            StoreFailureException: Redis failed, the stored value is corrupt, or
                every attempt lost the race to a concurrent writer
        """
        redis_key = self.build_key(user_id, key)

        for attempt in range(1, self.max_retries + 1):
            try:
                async with self.redis_client.pipeline(transaction=True) as pipe:
                    await pipe.watch(redis_key)
                    current = self._decode(await pipe.get(redis_key), redis_key)
                    updated = mutate(current)
                    pipe.multi()
                    pipe.set(redis_key, self._encode(updated))
                    await pipe.execute()
                    return updated
            except WatchError:
                logger.info(
                    "[UserSettingStore] Concurrent write on '%s', attempt %s/%s",
                    redis_key,
                    attempt,
                    self.max_retries,
                )
            except RedisError as exc:
                raise StoreFailureException(
                    "Failed to update user setting",
                    {"user_id": user_id, "key": str(key)},
                ) from exc

        logger.warning(
            "[UserSettingStore] Gave up updating '%s' after %s attempts",
            redis_key,
            self.max_retries,
        )
        raise StoreFailureException(
            "User setting was modified concurrently",
            {"user_id": user_id, "key": str(key), "attempts": self.max_retries},
        )

    # ----- Access tokens setting ----- #
    async def get_access_tokens(self, user_id: int) -> list[AccessTokenRecord]:
        value = await self.get(user_id, UserSettingKey.ACCESS_TOKENS)
        return self._parse_access_tokens(value, user_id)

    async def update_access_tokens(
        self, user_id: int, mutate: AccessTokensMutation
    ) -> list[AccessTokenRecord]:
        def apply(value: Any | None) -> dict[str, Any]:
            updated = mutate(self._parse_access_tokens(value, user_id))
            return AccessTokensUserSetting(access_tokens=updated).model_dump()

        stored = await self.update(user_id, UserSettingKey.ACCESS_TOKENS, apply)
        return self._parse_access_tokens(stored, user_id)

    @staticmethod
    def _parse_access_tokens(value: Any | None, user_id: int) -> list[AccessTokenRecord]:
        if value is None:
            return []
        try:
            return AccessTokensUserSetting.model_validate(value).access_tokens
        except ValidationError as exc:
            raise StoreFailureException(
                "Stored access tokens setting is invalid", {"user_id": user_id}
            ) from exc

    @staticmethod
    def _encode(value: Any) -> str:
        return json.dumps(value, separators=(",", ":"))

    @staticmethod
    def _decode(raw: str | bytes | None, redis_key: str) -> Any | None:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise StoreFailureException(
                "Stored user setting is not valid JSON", {"key": redis_key}
            ) from exc


def get_user_setting_store(
    redis_client: Redis = Depends(get_redis_client),
) -> UserSettingStore:
    return UserSettingStore(
        redis_client, max_retries=config.settings_store.UPDATE_MAX_RETRIES
    )
