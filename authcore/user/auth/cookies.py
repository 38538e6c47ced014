"""
Session cookies for browser clients.

A sign-in issues an access/refresh token pair and stores both in HTTP-only,
strict same-site cookies. Both cookies expire a margin earlier than the
refresh token itself, so the browser drops the session before the server
would start rejecting the refresh token.

Renewal policy, evaluated on every cookie-authenticated request:

1. The access token is valid and expires later than the refresh threshold:
   the session is used as is.
2. The access token is valid but expires within the threshold, or it has
   already expired: the refresh token is verified and, when valid, a new
   access token is issued and the access cookie is re-set.
3. Anything else fails authentication, and both cookies are cleared.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Protocol

from fastapi import Depends
from starlette.responses import Response

from authcore.core.errors.exceptions import (
    TokenExpiredException,
    UnauthorizedException,
)
from authcore.core.utils.datetime_utils import ensure_aware_utc, get_utc_now
from authcore.main.config import Config, CookieConfig, config
from authcore.user.auth.jwt_payload_schema import TokenAudience, TokenClaims
from authcore.user.auth.security import TokenIssuer, get_token_issuer
from authcore.user.auth.signer import TokenSigner
from loggers import get_logger

logger = get_logger(__name__)

EXPIRED_COOKIE_OFFSET = timedelta(hours=1)


class SessionUser(Protocol):
    id: int
    username: str


class SessionState(StrEnum):
    VALID = "valid"
    RENEW = "renew"
    INVALID = "invalid"


@dataclass(frozen=True, slots=True)
class SessionCheck:
    state: SessionState
    claims: TokenClaims | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    cookie_expires_at: datetime


def set_token_cookie(
    response: Response,
    name: str,
    token: str,
    expires_at: datetime,
    *,
    secure: bool = False,
) -> None:
    response.set_cookie(
        key=name,
        value=token,
        # Starlette renders the expiry with usegmt, which needs timezone.utc.
        expires=ensure_aware_utc(expires_at),
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )


def clear_session_cookies(
    response: Response,
    cookie_config: CookieConfig | None = None,
    now: datetime | None = None,
) -> None:
    """Expire both session cookies on the client. No server-side state is involved."""
    cookie_config = cookie_config or config.cookies
    expired_at = (now or get_utc_now()) - EXPIRED_COOKIE_OFFSET
    for name in (
        cookie_config.ACCESS_TOKEN_COOKIE_NAME,
        cookie_config.REFRESH_TOKEN_COOKIE_NAME,
    ):
        set_token_cookie(
            response, name, "", expired_at, secure=cookie_config.COOKIE_SECURE
        )


class SessionCookieManager:
    def __init__(
        self,
        issuer: TokenIssuer,
        *,
        refresh_threshold: timedelta,
        cookie_expiry_margin: timedelta,
        cookie_config: CookieConfig,
    ) -> None:
        if cookie_expiry_margin <= timedelta(0):
            raise ValueError("cookie_expiry_margin must be positive")
        self.issuer = issuer
        self.refresh_threshold = refresh_threshold
        self.cookie_expiry_margin = cookie_expiry_margin
        self.cookie_config = cookie_config

    @classmethod
    def from_config(cls, issuer: TokenIssuer, settings: Config) -> "SessionCookieManager":
        return cls(
            issuer,
            refresh_threshold=timedelta(minutes=settings.jwt.REFRESH_THRESHOLD_MINUTES),
            cookie_expiry_margin=timedelta(
                minutes=settings.jwt.COOKIE_EXPIRY_MARGIN_MINUTES
            ),
            cookie_config=settings.cookies,
        )

    @property
    def signer(self) -> TokenSigner:
        return self.issuer.signer

    def cookie_expiry(self, now: datetime) -> datetime:
        return now + self.issuer.refresh_token_ttl - self.cookie_expiry_margin

    def establish_session(
        self, response: Response, user: SessionUser, now: datetime | None = None
    ) -> SessionTokens:
        now = now or self.signer.now()
        access_token = self.issuer.issue_session_access(user.username, user.id, now)
        refresh_token = self.issuer.issue_session_refresh(user.username, user.id, now)
        cookie_expires_at = self.cookie_expiry(now)

        set_token_cookie(
            response,
            self.cookie_config.ACCESS_TOKEN_COOKIE_NAME,
            access_token,
            cookie_expires_at,
            secure=self.cookie_config.COOKIE_SECURE,
        )
        set_token_cookie(
            response,
            self.cookie_config.REFRESH_TOKEN_COOKIE_NAME,
            refresh_token,
            cookie_expires_at,
            secure=self.cookie_config.COOKIE_SECURE,
        )
        logger.info("[SessionCookies] Session established for user %s", user.id)

        return SessionTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            cookie_expires_at=cookie_expires_at,
        )

    def terminate_session(self, response: Response, now: datetime | None = None) -> None:
        clear_session_cookies(response, self.cookie_config, now or self.signer.now())

    def evaluate(
        self,
        access_token: str | None,
        refresh_token: str | None,
        now: datetime | None = None,
    ) -> SessionCheck:
        """Decide whether a cookie session is usable, needs renewal, or is dead."""
        now = now or self.signer.now()
        if not access_token:
            return SessionCheck(SessionState.INVALID, reason="Access token missing")

        try:
            access_claims = self.signer.verify(
                access_token, TokenAudience.SESSION_ACCESS, now
            )
        except TokenExpiredException:
            access_claims = None
        except UnauthorizedException as exc:
            return SessionCheck(SessionState.INVALID, reason=exc.message)

        if access_claims is not None and not self._within_threshold(access_claims, now):
            return SessionCheck(SessionState.VALID, claims=access_claims)

        if not refresh_token:
            return SessionCheck(SessionState.INVALID, reason="Refresh token missing")
        try:
            refresh_claims = self.signer.verify(
                refresh_token, TokenAudience.SESSION_REFRESH, now
            )
        except UnauthorizedException as exc:
            return SessionCheck(SessionState.INVALID, reason=exc.message)

        if access_claims is not None and access_claims.subject != refresh_claims.subject:
            return SessionCheck(SessionState.INVALID, reason="Session token mismatch")

        # The refresh cookie is already gone on the client past this point.
        if (
            refresh_claims.expires_at is not None
            and refresh_claims.expires_at - self.cookie_expiry_margin <= now
        ):
            return SessionCheck(SessionState.INVALID, reason="Session ends too soon")

        return SessionCheck(SessionState.RENEW, claims=refresh_claims)

    def renew_session(
        self,
        response: Response,
        refresh_claims: TokenClaims,
        now: datetime | None = None,
    ) -> str:
        """Reissue the access token for a session and re-set its cookie."""
        now = now or self.signer.now()
        access_token = self.issuer.issue_session_access(
            refresh_claims.principal, refresh_claims.subject, now
        )
        if refresh_claims.expires_at is not None:
            cookie_expires_at = min(
                self.cookie_expiry(now),
                refresh_claims.expires_at - self.cookie_expiry_margin,
            )
        else:
            cookie_expires_at = self.cookie_expiry(now)

        set_token_cookie(
            response,
            self.cookie_config.ACCESS_TOKEN_COOKIE_NAME,
            access_token,
            cookie_expires_at,
            secure=self.cookie_config.COOKIE_SECURE,
        )
        logger.info(
            "[SessionCookies] Access token renewed for user %s", refresh_claims.subject
        )
        return access_token

    def _within_threshold(self, claims: TokenClaims, now: datetime) -> bool:
        if claims.expires_at is None:
            return False
        return claims.expires_at - now <= self.refresh_threshold


def get_session_cookie_manager(
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> SessionCookieManager:
    return SessionCookieManager.from_config(issuer, config)
