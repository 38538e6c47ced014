from fastapi import APIRouter, FastAPI
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from authcore.core.errors.exceptions import (
    CoreException,
    InfrastructureException,
    InstanceNotFoundException,
    InstanceProcessingException,
    PermissionDeniedException,
    UnauthorizedException,
)
from authcore.core.errors.handlers import (
    CoreExceptionHandler,
    InfrastructureExceptionHandler,
    InstanceNotFoundExceptionHandler,
    InstanceProcessingExceptionHandler,
    PermissionDeniedExceptionHandler,
    RequestValidationExceptionHandler,
    UnauthorizedExceptionHandler,
    ValidationErrorExceptionHandler,
    as_exception_handler,
)
from authcore.healthcheck import routers as healthcheck_routers
from authcore.user import routers as user_routers
from authcore.user.auth import routers as auth_routers

# Starlette resolves handlers along the exception MRO, so every
# UnauthorizedException subclass lands on the cookie-clearing handler.
EXCEPTION_HANDLERS = (
    (InfrastructureException, InfrastructureExceptionHandler),
    (RequestValidationError, RequestValidationExceptionHandler),
    (ValidationError, ValidationErrorExceptionHandler),
    (CoreException, CoreExceptionHandler),
    (InstanceNotFoundException, InstanceNotFoundExceptionHandler),
    (InstanceProcessingException, InstanceProcessingExceptionHandler),
    (UnauthorizedException, UnauthorizedExceptionHandler),
    (PermissionDeniedException, PermissionDeniedExceptionHandler),
)


def include_routers(app: FastAPI) -> None:
    """
    Mount the versioned API under ``/v1`` and the health probe at the root.

    Parameters:
        app (FastAPI): The application receiving the routers.
    """
    v1_router = APIRouter()
    v1_router.include_router(auth_routers.router, prefix="/auth", tags=["Auth"])
    v1_router.include_router(user_routers.router, prefix="/users", tags=["Users"])

    app.include_router(v1_router, prefix="/v1")
    app.include_router(healthcheck_routers.router, tags=["System"])


def include_exceptions_handlers(app: FastAPI) -> None:
    for exc_class, handler_class in EXCEPTION_HANDLERS:
        app.add_exception_handler(exc_class, as_exception_handler(handler_class()))
