from datetime import datetime
from enum import StrEnum
from typing import NotRequired, TypedDict

from pydantic import BaseModel, ConfigDict

from authcore.core.utils.datetime_utils import (
    from_numeric_date,
    to_numeric_date,
    truncate_to_seconds,
)


class TokenAudience(StrEnum):
    SESSION_ACCESS = "session-access"
    SESSION_REFRESH = "session-refresh"
    PERSONAL_ACCESS = "personal-access"


class JWTPayload(TypedDict):
    """Type definition for JWT token payload"""

    name: str  # Principal (username)
    sub: str  # Stringified user ID
    aud: str  # One of TokenAudience
    iss: str
    iat: int
    exp: NotRequired[int]  # Absent for non-expiring personal tokens


class TokenClaims(BaseModel):
    """Decoded claim set with second-resolution timestamps."""

    principal: str
    subject: str
    audience: TokenAudience
    issuer: str
    issued_at: datetime
    expires_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def user_id(self) -> int:
        return int(self.subject)

    def to_payload(self) -> JWTPayload:
        payload: JWTPayload = {
            "name": self.principal,
            "sub": self.subject,
            "aud": self.audience.value,
            "iss": self.issuer,
            "iat": to_numeric_date(self.issued_at),
        }
        if self.expires_at is not None:
            payload["exp"] = to_numeric_date(self.expires_at)
        return payload

    @classmethod
    def from_payload(cls, payload: JWTPayload) -> "TokenClaims":
        exp = payload.get("exp")
        return cls(
            principal=payload["name"],
            subject=payload["sub"],
            audience=TokenAudience(payload["aud"]),
            issuer=payload["iss"],
            issued_at=from_numeric_date(payload["iat"]),
            expires_at=from_numeric_date(exp) if exp is not None else None,
        )

    @classmethod
    def build(
        cls,
        *,
        principal: str,
        subject: str | int,
        audience: TokenAudience,
        issuer: str,
        issued_at: datetime,
        expires_at: datetime | None = None,
    ) -> "TokenClaims":
        return cls(
            principal=principal,
            subject=str(subject),
            audience=audience,
            issuer=issuer,
            issued_at=truncate_to_seconds(issued_at),
            expires_at=truncate_to_seconds(expires_at) if expires_at else None,
        )
