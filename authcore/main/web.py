from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRoute
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from authcore.core.middleware import register_middlewares
from authcore.main.config import config
from authcore.main.lifespan import lifespan
from authcore.main.presentation import include_exceptions_handlers, include_routers
from loggers import get_logger

logging.getLogger("uvicorn.access").disabled = True
logger = get_logger(__name__)

Lifespan = Callable[[FastAPI], AbstractAsyncContextManager[None]]


def get_application(lifespan_handler: Lifespan = lifespan) -> FastAPI:
    """Build the API. Tests pass their own lifespan to skip Redis startup."""
    application = FastAPI(
        title=config.app.PROJECT_NAME,
        debug=config.app.DEBUG,
        version=config.app.VERSION,
        lifespan=lifespan_handler,
    )

    register_middlewares(application)

    # Session cookies are sent cross-origin only with credentials allowed.
    application.add_middleware(
        CORSMiddleware,  # noqa
        allow_origins=config.app.CORS_ALLOWED_ORIGINS,
        allow_credentials=config.app.CORS_ALLOW_CREDENTIALS,
        allow_methods=config.app.CORS_ALLOWED_METHODS,
        allow_headers=config.app.CORS_ALLOWED_HEADERS,
        expose_headers=config.app.CORS_EXPOSE_HEADERS,
    )

    include_exceptions_handlers(application)
    include_routers(application)

    api_routes = [
        route
        for route in application.routes
        if isinstance(route, APIRoute) and route.include_in_schema
    ]
    logger.info("Mounted %d API routes.", len(api_routes))
    for route in api_routes:
        logger.debug("Route: %s %s", ",".join(sorted(route.methods)), route.path)

    application.add_middleware(SentryAsgiMiddleware)

    return application


app = get_application()
