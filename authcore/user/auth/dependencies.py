from fastapi import Depends, Request, Response, Security
from fastapi.security.api_key import APIKeyHeader

from authcore.core.errors.exceptions import (
    InstanceNotFoundException,
    UnauthorizedException,
)
from authcore.user.access_tokens.registry import (
    PersonalAccessTokenRegistry,
    get_access_token_registry,
)
from authcore.user.auth.cookies import (
    SessionCookieManager,
    SessionState,
    get_session_cookie_manager,
)
from authcore.user.auth.jwt_payload_schema import TokenAudience, TokenClaims
from authcore.user.dependencies import get_user_lookup
from authcore.user.models import User
from authcore.user.services import UserLookup
from loggers import get_logger

logger = get_logger(__name__)

personal_token_header = APIKeyHeader(
    name="Authorization", scheme_name="personal-access-token", auto_error=False
)


async def get_current_user(
    request: Request,
    response: Response,
    authorization: str | None = Security(personal_token_header),
    lookup: UserLookup = Depends(get_user_lookup),
    cookie_manager: SessionCookieManager = Depends(get_session_cookie_manager),
    registry: PersonalAccessTokenRegistry = Depends(get_access_token_registry),
) -> User:
    """
    Get the current authenticated user.

    A bearer token in the Authorization header is treated as a personal access
    token. Without it, the session cookies are used and the access token is
    renewed on ``response`` when the renewal policy asks for it.

    Raises:
        UnauthorizedException: If authentication fails
    """
    if authorization:
        return await authenticate_personal_token(authorization, lookup, registry)
    return await authenticate_session(request, response, lookup, cookie_manager)


async def authenticate_personal_token(
    authorization: str,
    lookup: UserLookup,
    registry: PersonalAccessTokenRegistry,
) -> User:
    token = authorization
    if token.lower().startswith("bearer "):
        token = token[7:].strip()

    claims = registry.signer.verify(token, TokenAudience.PERSONAL_ACCESS)

    if not await registry.contains(claims.user_id, token):
        logger.info(
            "[Authenticate] Revoked access token presented for user %s",
            claims.subject,
        )
        raise UnauthorizedException("Access token has been revoked")

    return await _load_active_user(lookup, claims)


async def authenticate_session(
    request: Request,
    response: Response,
    lookup: UserLookup,
    cookie_manager: SessionCookieManager,
) -> User:
    cookie_names = cookie_manager.cookie_config
    check = cookie_manager.evaluate(
        request.cookies.get(cookie_names.ACCESS_TOKEN_COOKIE_NAME),
        request.cookies.get(cookie_names.REFRESH_TOKEN_COOKIE_NAME),
    )

    if check.state is SessionState.INVALID or check.claims is None:
        raise UnauthorizedException(check.reason or "Could not validate credentials")

    user = await _load_active_user(lookup, check.claims)

    if check.state is SessionState.RENEW:
        cookie_manager.renew_session(response, check.claims)

    return user


async def _load_active_user(lookup: UserLookup, claims: TokenClaims) -> User:
    credentials_exception = UnauthorizedException(
        "Could not validate credentials",
    )
    try:
        user = await lookup.get_by_id(claims.user_id)
    except (InstanceNotFoundException, ValueError):
        raise credentials_exception

    if not user.is_active:
        logger.info("[Authenticate] Inactive user %s rejected", user.id)
        raise credentials_exception

    return user

