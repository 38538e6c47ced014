"""
Registry of long-lived personal access tokens.

Tokens are kept per user as one list inside the user's settings. Only the
token string and its description are persisted; issue and expiry times are
recovered from the token's own signed claims whenever the list is read.
"""

from collections.abc import Iterable
from datetime import datetime

from fastapi import Depends

from authcore.core.errors.exceptions import (
    InstanceProcessingException,
    UnauthorizedException,
)
from authcore.core.utils.datetime_utils import truncate_to_seconds
from authcore.user.access_tokens.schemas import UserAccessToken
from authcore.user.auth.jwt_payload_schema import TokenAudience
from authcore.user.auth.security import TokenIssuer, get_token_issuer
from authcore.user.auth.signer import TokenSigner
from authcore.user.models import User
from authcore.user.settings.schemas import AccessTokenRecord
from authcore.user.settings.store import UserSettingStore, get_user_setting_store
from loggers import get_logger

logger = get_logger(__name__)

VerifiedRecord = UserAccessToken | UnauthorizedException


class PersonalAccessTokenRegistry:
    def __init__(self, store: UserSettingStore, issuer: TokenIssuer) -> None:
        self.store = store
        self.issuer = issuer

    @property
    def signer(self) -> TokenSigner:
        return self.issuer.signer

    async def list_tokens(
        self, user_id: int, now: datetime | None = None
    ) -> list[UserAccessToken]:
        """
        Live tokens of a user, oldest first.

        Tokens that no longer verify (expired, corrupt, signed with a retired
        key version) are left out of the result but stay in storage. Tokens
        issued in the same second keep their stored order.
        """
        records = await self.store.get_access_tokens(user_id)
        verified = self.verify_each(records, now)
        live = self.live_only(verified)
        logger.debug(
            "[TokenRegistry] User %s: %s stored, %s live",
            user_id,
            len(records),
            len(live),
        )
        return sorted(live, key=lambda item: item.issued_at)

    async def create(
        self,
        user: User,
        description: str,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> UserAccessToken:
        now = now or self.signer.now()
        if expires_at is not None:
            try:
                expires_at = truncate_to_seconds(expires_at)
            except OverflowError as exc:
                raise InstanceProcessingException(
                    "Access token expiry is out of range",
                    {"user_id": user.id},
                ) from exc
        if expires_at is not None and expires_at <= now:
            raise InstanceProcessingException(
                "Access token expiry must be in the future",
                {"user_id": user.id},
            )

        token = self.issuer.issue_personal_access(
            user.username, user.id, expires_at=expires_at, now=now
        )
        record = AccessTokenRecord(token=token, description=description)
        # Verified before the write so a bad token is never persisted.
        created = self.decorate(record, now)

        await self.store.update_access_tokens(
            user.id, lambda tokens: [*tokens, record]
        )
        logger.info("[TokenRegistry] Access token created for user %s", user.id)
        return created

    async def revoke(self, user_id: int, token: str) -> None:
        """Remove every stored copy of ``token``. Revoking an absent token is a no-op."""
        removed = 0

        def without_token(tokens: list[AccessTokenRecord]) -> list[AccessTokenRecord]:
            nonlocal removed
            kept = [record for record in tokens if record.token != token]
            removed = len(tokens) - len(kept)
            return kept

        await self.store.update_access_tokens(user_id, without_token)
        logger.info(
            "[TokenRegistry] Revoked %s access token(s) for user %s", removed, user_id
        )

    async def prune(self, user_id: int, now: datetime | None = None) -> int:
        """Physically delete stored tokens that no longer verify. Returns the count removed."""
        removed = 0

        def live_records(tokens: list[AccessTokenRecord]) -> list[AccessTokenRecord]:
            nonlocal removed
            verified = self.verify_each(tokens, now)
            kept = [
                record
                for record, result in zip(tokens, verified, strict=True)
                if isinstance(result, UserAccessToken)
            ]
            removed = len(tokens) - len(kept)
            return kept

        await self.store.update_access_tokens(user_id, live_records)
        logger.info(
            "[TokenRegistry] Pruned %s dead access token(s) for user %s", removed, user_id
        )
        return removed

    async def contains(self, user_id: int, token: str) -> bool:
        records = await self.store.get_access_tokens(user_id)
        return any(record.token == token for record in records)

    def decorate(
        self, record: AccessTokenRecord, now: datetime | None = None
    ) -> UserAccessToken:
        claims = self.signer.verify(record.token, TokenAudience.PERSONAL_ACCESS, now)
        return UserAccessToken(
            access_token=record.token,
            description=record.description,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
        )

    def verify_each(
        self, records: Iterable[AccessTokenRecord], now: datetime | None = None
    ) -> list[VerifiedRecord]:
        """Verify every record, keeping the failure in place of the result."""
        verified: list[VerifiedRecord] = []
        for record in records:
            try:
                verified.append(self.decorate(record, now))
            except UnauthorizedException as exc:
                verified.append(exc)
        return verified

    @staticmethod
    def live_only(verified: Iterable[VerifiedRecord]) -> list[UserAccessToken]:
        return [item for item in verified if isinstance(item, UserAccessToken)]


def get_access_token_registry(
    store: UserSettingStore = Depends(get_user_setting_store),
    issuer: TokenIssuer = Depends(get_token_issuer),
) -> PersonalAccessTokenRegistry:
    return PersonalAccessTokenRegistry(store=store, issuer=issuer)
