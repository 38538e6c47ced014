from collections.abc import Awaitable, Callable
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import sentry_sdk
from sqlalchemy.exc import OperationalError
from starlette.responses import Response

from loggers import get_logger

logger = get_logger(__name__)
timing_logger = get_logger("authcore.request.timing", plain_format=True)

CallNext = Callable[[Request], Awaitable[Response]]

UNEXPECTED_ERROR_DETAIL = "Unexpected error"
DATABASE_ERROR_DETAIL = "Database connection error. Please try again later."
NO_STORE_PREFIXES = ("/v1/auth", "/v1/users")
FAST_REQUEST_SECONDS = 0.5
SLOW_REQUEST_SECONDS = 2


def _route_template(request: Request) -> str:
    # The matched template keeps tokens carried in the path out of the logs.
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def register_middlewares(app: FastAPI) -> None:
    """Registers all custom middlewares. The last one registered runs first."""

    @app.middleware("http")
    async def security_headers_middleware(
        request: Request, call_next: CallNext
    ) -> Response:
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Content-Security-Policy", "frame-ancestors 'none'")
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers.setdefault("Cache-Control", "no-store")
        return response

    @app.middleware("http")
    async def request_timing_middleware(
        request: Request, call_next: CallNext
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        if elapsed < FAST_REQUEST_SECONDS:
            log, category = timing_logger.info, "[FAST]"
        elif elapsed < SLOW_REQUEST_SECONDS:
            log, category = timing_logger.warning, "[MODERATE]"
        else:
            log, category = timing_logger.warning, "[SLOW]"
        log(
            "%s %s %s |%.3fs|%s",
            category,
            request.method,
            _route_template(request),
            elapsed,
            response.status_code,
        )
        return response

    @app.middleware("http")
    async def unexpected_error_middleware(
        request: Request, call_next: CallNext
    ) -> Response:
        try:
            return await call_next(request)
        except OperationalError as exc:
            logger.error(
                "Database connection error at %s: %s", _route_template(request), exc.orig
            )
            sentry_sdk.capture_exception(exc)
            return JSONResponse(status_code=500, content={"detail": DATABASE_ERROR_DETAIL})
        except Exception as exc:
            logger.exception("Unexpected error at %s", _route_template(request))
            sentry_sdk.capture_exception(exc)
            return JSONResponse(
                status_code=500, content={"detail": UNEXPECTED_ERROR_DETAIL}
            )
