from collections.abc import Awaitable, Callable
from typing import Any, ClassVar, cast

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import sentry_sdk
from starlette.responses import Response

from authcore.core.errors.exceptions import CoreException
from authcore.user.auth.cookies import clear_session_cookies
from loggers import get_logger

response_logger = get_logger("authcore.request.error_response", plain_format=True)

HandlerCallable = Callable[[Request, Exception], Awaitable[Response]]

NO_DETAILS = "No additional details available"
SENSITIVE_KEYS = frozenset(
    {"authorization", "cookie", "token", "access_token", "password", "secret"}
)


def as_exception_handler(handler: Any) -> HandlerCallable:
    """Expose a handler instance with the signature FastAPI expects."""
    return cast(HandlerCallable, handler.__call__)


def format_error_response(error_type: str, message: str | None) -> dict[str, Any]:
    return {"error": error_type, "message": message or NO_DETAILS}


def format_log_message(
    request: Request,
    error_type: str,
    message: str | None,
    additional_info: dict[str, Any] | None = None,
    include_request_path: bool = False,
) -> str:
    """
    Format error message for logging

    Args:
        request: FastAPI Request object
        error_type: Type of error
        message: Error message
        additional_info: Context for logs only, never sent to clients.
            Values under credential-like keys are masked.
        include_request_path: Include request method and path

    Returns:
        Formatted log message
    """
    msg = " ".join((message or NO_DETAILS).split())
    if len(msg) > 500:
        msg = msg[:497] + "..."

    label = (error_type or "").strip() or "Error"
    label = label[:1].upper() + label[1:]

    request_id = request.headers.get("x-request-id")
    parts = [f"[{request_id}] " if request_id else "", f"[{label}] "]
    if include_request_path:
        parts.append(f"{request.method} {request.url.path} | ")
    parts.append(msg)

    if additional_info:
        details = ", ".join(
            f"{key}={'***' if key.lower() in SENSITIVE_KEYS else repr(value)}"
            for key, value in sorted(additional_info.items())
        )
        parts.append(f" | Additional info: {details}")

    return "".join(parts)


class CoreExceptionHandler:
    """
    Renders a ``CoreException`` as ``{"error": ..., "message": ...}``.

    Subclasses only change the status, the label and how loudly it is logged.
    """

    status_code: ClassVar[int] = 400
    error_type: ClassVar[str] = "Bad request"
    log_level: ClassVar[str] = "info"
    report_to_sentry: ClassVar[bool] = False

    def additional_info(self, exc: CoreException) -> dict[str, Any] | None:
        return exc.additional_info

    def finalize(self, response: JSONResponse) -> None:
        """Hook for response side effects such as cookie changes."""

    async def __call__(self, request: Request, exc: CoreException) -> JSONResponse:
        log_msg = format_log_message(
            request, self.error_type, exc.message, self.additional_info(exc)
        )
        getattr(response_logger, self.log_level)(log_msg)
        if self.report_to_sentry:
            sentry_sdk.capture_exception(exc)
        response = JSONResponse(
            status_code=self.status_code,
            content=format_error_response(self.error_type, exc.message),
        )
        self.finalize(response)
        return response


class InfrastructureExceptionHandler(CoreExceptionHandler):
    status_code = 500
    error_type = "Infrastructure error"
    log_level = "error"
    report_to_sentry = True


class InstanceNotFoundExceptionHandler(CoreExceptionHandler):
    status_code = 404
    error_type = "Instance not found"


class InstanceProcessingExceptionHandler(CoreExceptionHandler):
    error_type = "Instance processing error"


class PermissionDeniedExceptionHandler(CoreExceptionHandler):
    status_code = 403
    error_type = "Permission Denied"
    log_level = "warning"


class UnauthorizedExceptionHandler(CoreExceptionHandler):
    """
    Every authentication failure also expires the session cookies, so a browser
    holding a dead session stops sending it.
    """

    status_code = 401
    error_type = "Unauthorized"
    log_level = "warning"

    def additional_info(self, exc: CoreException) -> dict[str, Any]:
        return {"reason": type(exc).__name__, **(exc.additional_info or {})}

    def finalize(self, response: JSONResponse) -> None:
        clear_session_cookies(response)


class RequestValidationExceptionHandler:
    async def __call__(
        self, request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        safe_detail = jsonable_encoder(exc.errors())
        response_logger.debug(
            format_log_message(
                request,
                "Request validation error",
                str(safe_detail),
                include_request_path=True,
            )
        )
        return JSONResponse(status_code=422, content={"detail": safe_detail})


class ValidationErrorExceptionHandler:
    """Invalid data built by the server itself, never caused by the client."""

    async def __call__(self, request: Request, exc: ValidationError) -> JSONResponse:
        response_logger.error(
            format_log_message(
                request,
                "Backend validation error",
                str(jsonable_encoder(exc.errors())),
                include_request_path=True,
            )
        )
        sentry_sdk.capture_exception(exc)
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})
