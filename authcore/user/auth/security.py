from datetime import datetime, timedelta

from fastapi import Depends

from authcore.main.config import JWTConfig, config
from authcore.user.auth.jwt_payload_schema import TokenAudience, TokenClaims
from authcore.user.auth.signer import TokenSigner


class TokenIssuer:
    """Builds claim sets for each token kind and signs them."""

    def __init__(
        self,
        signer: TokenSigner,
        *,
        access_token_ttl: timedelta,
        refresh_token_ttl: timedelta,
    ) -> None:
        self.signer = signer
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl

    @classmethod
    def from_config(cls, signer: TokenSigner, jwt_config: JWTConfig) -> "TokenIssuer":
        return cls(
            signer,
            access_token_ttl=timedelta(minutes=jwt_config.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_token_ttl=timedelta(minutes=jwt_config.REFRESH_TOKEN_EXPIRE_MINUTES),
        )

    def issue_session_access(
        self, principal: str, subject: str | int, now: datetime | None = None
    ) -> str:
        """
        Create a session access token

        Args:
            principal: Username carried in the ``name`` claim
            subject: User ID
            now: Issue time, defaults to the signer clock

        Returns:
            str: Encoded JWT access token
        """
        issued_at = now or self.signer.now()
        return self._issue(
            principal,
            subject,
            TokenAudience.SESSION_ACCESS,
            issued_at,
            issued_at + self.access_token_ttl,
        )

    def issue_session_refresh(
        self, principal: str, subject: str | int, now: datetime | None = None
    ) -> str:
        """
        Create a session refresh token

        Args:
            principal: Username carried in the ``name`` claim
            subject: User ID
            now: Issue time, defaults to the signer clock

        Returns:
            str: Encoded JWT refresh token
        """
        issued_at = now or self.signer.now()
        return self._issue(
            principal,
            subject,
            TokenAudience.SESSION_REFRESH,
            issued_at,
            issued_at + self.refresh_token_ttl,
        )

    def issue_personal_access(
        self,
        principal: str,
        subject: str | int,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> str:
        """
        Create a personal access token.

        Personal tokens are the only kind whose expiry is caller-controlled;
        without ``expires_at`` the token never expires.
        """
        return self._issue(
            principal,
            subject,
            TokenAudience.PERSONAL_ACCESS,
            now or self.signer.now(),
            expires_at,
        )

    def _issue(
        self,
        principal: str,
        subject: str | int,
        audience: TokenAudience,
        issued_at: datetime,
        expires_at: datetime | None,
    ) -> str:
        claims = TokenClaims.build(
            principal=principal,
            subject=subject,
            audience=audience,
            issuer=self.signer.issuer,
            issued_at=issued_at,
            expires_at=expires_at,
        )
        return self.signer.sign(claims)


def get_token_signer() -> TokenSigner:
    return TokenSigner.from_config(config.jwt)


def get_token_issuer(signer: TokenSigner = Depends(get_token_signer)) -> TokenIssuer:
    return TokenIssuer.from_config(signer, config.jwt)
