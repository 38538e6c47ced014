from fastapi import Request
from redis.asyncio import Redis

from authcore.core.errors.exceptions import StoreFailureException


async def get_redis_client(request: Request) -> Redis:
    client: Redis | None = getattr(request.app.state, "redis_client", None)
    if client is None:
        raise StoreFailureException("User settings store is not connected")
    return client
