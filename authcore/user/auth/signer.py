"""
Compact signed-token production and verification.

Tokens are JWTs signed with an HMAC algorithm. Every token carries a ``kid``
header naming the key version that produced it. Verification pins the
algorithm and only accepts key versions present in the key ring, so a new
version can be introduced for signing while tokens from older versions stay
verifiable until they expire.
"""

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, cast

import jwt

from authcore.core.errors.exceptions import (
    InvalidAudienceException,
    InvalidSignatureException,
    MalformedTokenException,
    SigningException,
    TokenExpiredException,
    UnknownKeyVersionException,
)
from authcore.core.utils.datetime_utils import get_utc_now
from authcore.main.config import JWTConfig
from authcore.user.auth.jwt_payload_schema import JWTPayload, TokenAudience, TokenClaims
from loggers import get_logger

logger = get_logger(__name__)

REQUIRED_CLAIMS = ["name", "sub", "aud", "iss", "iat"]


class TokenSigner:
    """Signs claim sets and verifies token strings against a key ring."""

    def __init__(
        self,
        keys: Mapping[str, str],
        current_key_id: str,
        *,
        algorithm: str = "HS256",
        issuer: str,
        clock: Callable[[], datetime] = get_utc_now,
    ) -> None:
        if current_key_id not in keys:
            raise ValueError(f"Signing key '{current_key_id}' is not in the key ring")
        self._keys = dict(keys)
        self.current_key_id = current_key_id
        self.algorithm = algorithm
        self.issuer = issuer
        self._clock = clock

    @classmethod
    def from_config(
        cls, jwt_config: JWTConfig, clock: Callable[[], datetime] = get_utc_now
    ) -> "TokenSigner":
        return cls(
            {jwt_config.KEY_ID: jwt_config.JWT_SECRET_KEY},
            jwt_config.KEY_ID,
            algorithm=jwt_config.ALGORITHM,
            issuer=jwt_config.ISSUER,
            clock=clock,
        )

    @property
    def key_ids(self) -> frozenset[str]:
        return frozenset(self._keys)

    def now(self) -> datetime:
        return self._clock()

    def sign(self, claims: TokenClaims) -> str:
        try:
            encoded = jwt.encode(
                dict(claims.to_payload()),
                self._keys[self.current_key_id],
                algorithm=self.algorithm,
                headers={"kid": self.current_key_id},
            )
        except (TypeError, ValueError) as exc:
            logger.error("[TokenSigner] Failed to serialize claims: %s", exc)
            raise SigningException("Failed to sign token") from exc
        return str(encoded)

    def verify(
        self,
        token: str,
        audience: TokenAudience | None = None,
        now: datetime | None = None,
    ) -> TokenClaims:
        """
        Verify a token string and return its claims.

        Args:
            token: The compact JWT string
            audience: The audience the verification context expects; when None
                any of the known audiences is accepted
            now: Reference time for the expiry check, defaults to the signer clock

        Raises:
            MalformedTokenException: The token or its claims cannot be parsed
            InvalidSignatureException: Algorithm mismatch or bad signature
            UnknownKeyVersionException: The ``kid`` header is not in the key ring
            TokenExpiredException: The token carries an expiry that has passed
            InvalidAudienceException: The audience does not match ``audience``
        """
        header = self._read_header(token)

        if header.get("alg") != self.algorithm:
            raise InvalidSignatureException(
                "Unexpected signing algorithm",
                {"alg": header.get("alg"), "expected": self.algorithm},
            )

        kid = header.get("kid")
        if kid not in self._keys:
            raise UnknownKeyVersionException(
                "Unknown token key version", {"kid": kid}
            )

        try:
            payload = jwt.decode(
                token,
                self._keys[kid],
                algorithms=[self.algorithm],
                audience=audience.value if audience else None,
                issuer=self.issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_aud": audience is not None,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignatureException("Invalid token signature") from exc
        except jwt.InvalidAudienceError as exc:
            raise InvalidAudienceException(
                "Token audience mismatch",
                {"expected": audience.value if audience else None},
            ) from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenException("Malformed token") from exc

        try:
            claims = TokenClaims.from_payload(cast(JWTPayload, payload))
        except (KeyError, TypeError, ValueError) as exc:
            raise MalformedTokenException("Invalid token structure") from exc

        reference = now or self.now()
        if claims.expires_at is not None and claims.expires_at <= reference:
            raise TokenExpiredException(
                "Token expired", {"sub": claims.subject, "aud": claims.audience.value}
            )

        return claims

    @staticmethod
    def _read_header(token: Any) -> dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise MalformedTokenException("Token is empty")
        try:
            return jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenException("Malformed token header") from exc
