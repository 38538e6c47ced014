from fastapi import FastAPI
from redis.asyncio import Redis
from redis.exceptions import RedisError

from loggers import get_logger

logger = get_logger(__name__)


async def on_redis_startup(app: FastAPI, connection_url: str) -> None:
    """
    Connect the user settings client and keep it on ``app.state``.

    Startup fails when Redis does not answer a ping.
    """
    client = Redis.from_url(connection_url, decode_responses=True)
    try:
        await client.ping()
    except RedisError:
        await client.aclose()
        logger.exception("Redis is unreachable at startup")
        raise
    app.state.redis_client = client
    logger.info("Redis client connected.")


async def on_redis_shutdown(app: FastAPI) -> None:
    client: Redis | None = getattr(app.state, "redis_client", None)
    if client is None:
        return
    await client.aclose()
    app.state.redis_client = None
    logger.info("Redis client closed.")
