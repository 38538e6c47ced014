from typing import Any


class CoreException(Exception):
    def __init__(
        self, message: str | None = None, additional_info: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.additional_info = additional_info


class InfrastructureException(CoreException):
    pass


class StoreFailureException(InfrastructureException):
    pass


class SigningException(InfrastructureException):
    pass


class InstanceNotFoundException(CoreException):
    pass


class InstanceProcessingException(CoreException):
    pass


class UnauthorizedException(CoreException):
    pass


class MalformedTokenException(UnauthorizedException):
    pass


class InvalidSignatureException(UnauthorizedException):
    pass


class UnknownKeyVersionException(UnauthorizedException):
    pass


class TokenExpiredException(UnauthorizedException):
    pass


class InvalidAudienceException(UnauthorizedException):
    pass


class PermissionDeniedException(CoreException):
    pass
