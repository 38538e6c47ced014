from fastapi import Depends, Response

from authcore.core.errors.exceptions import (
    InstanceNotFoundException,
    InstanceProcessingException,
    PermissionDeniedException,
)
from authcore.core.utils.security import verify_credentials
from authcore.user.auth.cookies import SessionCookieManager, get_session_cookie_manager
from authcore.user.auth.schemas import SignInModel
from authcore.user.dependencies import get_user_lookup
from authcore.user.models import User
from authcore.user.schemas import UserProfileViewModel
from authcore.user.services import UserLookup
from loggers import get_logger

INVALID_CREDENTIALS_MESSAGE = "Incorrect username or password."
logger = get_logger(__name__)


class SignInUseCase:
    """Use case for signing in a user with a cookie session."""

    def __init__(
        self,
        lookup: UserLookup,
        cookie_manager: SessionCookieManager,
    ) -> None:
        self.lookup = lookup
        self.cookie_manager = cookie_manager

    async def execute(
        self,
        data: SignInModel,
        response: Response,
    ) -> UserProfileViewModel:
        user: User | None
        try:
            user = await self.lookup.get_by_username(data.username)
        except InstanceNotFoundException:
            logger.debug("[SignIn] User '%s' not found.", data.username)
            user = None

        password_hash = user.password_hash if user is not None else None
        if not await verify_credentials(data.password, password_hash) or user is None:
            logger.debug("[SignIn] Rejected credentials for '%s'", data.username)
            raise InstanceProcessingException(INVALID_CREDENTIALS_MESSAGE)

        if not user.is_active:
            logger.info("[SignIn] User '%s' is blocked.", data.username)
            raise PermissionDeniedException("User is blocked")

        self.cookie_manager.establish_session(response, user)

        return UserProfileViewModel.model_validate(user)


def get_signin_use_case(
    lookup: UserLookup = Depends(get_user_lookup),
    cookie_manager: SessionCookieManager = Depends(get_session_cookie_manager),
) -> SignInUseCase:
    return SignInUseCase(lookup=lookup, cookie_manager=cookie_manager)
