from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from authcore.core.redis.lifecycle import on_redis_shutdown, on_redis_startup
from authcore.main.config import config
from authcore.main.sentry import init_sentry


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    init_sentry()
    await on_redis_startup(app, config.redis.dsn)

    yield

    await on_redis_shutdown(app)
