from datetime import timedelta

import jwt
import pytest

from authcore.core.errors.exceptions import (
    InvalidAudienceException,
    InvalidSignatureException,
    MalformedTokenException,
    SigningException,
    TokenExpiredException,
    UnauthorizedException,
    UnknownKeyVersionException,
)
from authcore.user.auth.jwt_payload_schema import TokenAudience, TokenClaims
from authcore.user.auth.signer import TokenSigner
from tests.factories.token_factory import (
    ISSUER,
    NOW,
    OTHER_SECRET,
    SECRET,
    build_signer,
    encode_raw,
    raw_payload,
)


def _claims(audience: TokenAudience, expires_in: timedelta | None) -> TokenClaims:
    return TokenClaims.build(
        principal="alice",
        subject=1,
        audience=audience,
        issuer=ISSUER,
        issued_at=NOW,
        expires_at=NOW + expires_in if expires_in else None,
    )


@pytest.mark.parametrize(
    ("audience", "expires_in"),
    [
        (TokenAudience.SESSION_ACCESS, timedelta(hours=24)),
        (TokenAudience.SESSION_REFRESH, timedelta(days=7)),
        (TokenAudience.PERSONAL_ACCESS, timedelta(days=30)),
        (TokenAudience.PERSONAL_ACCESS, None),
    ],
)
def test_verify_returns_signed_claims(
    signer: TokenSigner, audience: TokenAudience, expires_in: timedelta | None
) -> None:
    claims = _claims(audience, expires_in)

    assert signer.verify(signer.sign(claims), audience) == claims


def test_verify_without_expected_audience_accepts_any_kind(signer: TokenSigner) -> None:
    claims = _claims(TokenAudience.SESSION_REFRESH, timedelta(days=7))

    assert signer.verify(signer.sign(claims)).audience is TokenAudience.SESSION_REFRESH


def test_signed_header_carries_pinned_algorithm_and_key_version(
    signer: TokenSigner,
) -> None:
    token = signer.sign(_claims(TokenAudience.SESSION_ACCESS, timedelta(hours=1)))

    assert jwt.get_unverified_header(token) == {
        "alg": "HS256",
        "kid": "v1",
        "typ": "JWT",
    }


def test_claims_are_truncated_to_whole_seconds(signer: TokenSigner) -> None:
    claims = TokenClaims.build(
        principal="alice",
        subject=1,
        audience=TokenAudience.SESSION_ACCESS,
        issuer=ISSUER,
        issued_at=NOW.replace(microsecond=987654),
        expires_at=NOW + timedelta(hours=1, microseconds=5),
    )

    verified = signer.verify(signer.sign(claims), TokenAudience.SESSION_ACCESS)

    assert verified.issued_at == NOW
    assert verified.expires_at == NOW + timedelta(hours=1)


@pytest.mark.parametrize(
    "after",
    [timedelta(hours=1), timedelta(hours=1, seconds=1), timedelta(days=365)],
)
def test_expired_token_is_rejected(signer: TokenSigner, after: timedelta) -> None:
    token = signer.sign(_claims(TokenAudience.SESSION_ACCESS, timedelta(hours=1)))

    with pytest.raises(TokenExpiredException):
        signer.verify(token, TokenAudience.SESSION_ACCESS, NOW + after)


def test_token_is_valid_until_the_last_second(signer: TokenSigner) -> None:
    token = signer.sign(_claims(TokenAudience.SESSION_ACCESS, timedelta(hours=1)))

    claims = signer.verify(
        token, TokenAudience.SESSION_ACCESS, NOW + timedelta(minutes=59, seconds=59)
    )

    assert claims.subject == "1"


def test_non_expiring_personal_token_never_expires(signer: TokenSigner) -> None:
    token = signer.sign(_claims(TokenAudience.PERSONAL_ACCESS, None))

    claims = signer.verify(
        token, TokenAudience.PERSONAL_ACCESS, NOW + timedelta(days=3650)
    )

    assert claims.expires_at is None


@pytest.mark.parametrize(
    ("signed_for", "expected"),
    [
        (TokenAudience.SESSION_REFRESH, TokenAudience.SESSION_ACCESS),
        (TokenAudience.SESSION_ACCESS, TokenAudience.SESSION_REFRESH),
        (TokenAudience.SESSION_ACCESS, TokenAudience.PERSONAL_ACCESS),
        (TokenAudience.PERSONAL_ACCESS, TokenAudience.SESSION_ACCESS),
    ],
)
def test_audience_isolation(
    signer: TokenSigner, signed_for: TokenAudience, expected: TokenAudience
) -> None:
    token = signer.sign(_claims(signed_for, timedelta(hours=1)))

    with pytest.raises(InvalidAudienceException) as exc_info:
        signer.verify(token, expected)

    assert isinstance(exc_info.value, UnauthorizedException)


def test_algorithm_mismatch_is_rejected(signer: TokenSigner) -> None:
    token = encode_raw(raw_payload(), algorithm="HS512")

    with pytest.raises(InvalidSignatureException):
        signer.verify(token, TokenAudience.SESSION_ACCESS)


def test_tampered_alg_header_is_rejected(signer: TokenSigner) -> None:
    token = signer.sign(_claims(TokenAudience.SESSION_ACCESS, timedelta(hours=1)))
    header, payload, signature = token.split(".")
    forged_header = encode_raw(raw_payload(), algorithm="HS384").split(".")[0]

    with pytest.raises(InvalidSignatureException):
        signer.verify(f"{forged_header}.{payload}.{signature}")


def test_unknown_key_version_is_rejected(signer: TokenSigner) -> None:
    token = encode_raw(raw_payload(), headers={"kid": "v2"})

    with pytest.raises(UnknownKeyVersionException):
        signer.verify(token, TokenAudience.SESSION_ACCESS)


def test_missing_key_version_is_rejected(signer: TokenSigner) -> None:
    token = encode_raw(raw_payload(), headers={"typ": "JWT"})

    with pytest.raises(UnknownKeyVersionException):
        signer.verify(token, TokenAudience.SESSION_ACCESS)


def test_signature_from_another_secret_is_rejected(signer: TokenSigner) -> None:
    token = encode_raw(raw_payload(), secret=OTHER_SECRET)

    with pytest.raises(InvalidSignatureException):
        signer.verify(token, TokenAudience.SESSION_ACCESS)


@pytest.mark.parametrize("token", ["", "not-a-token", "a.b.c", "eyJhbGciOiJIUzI1NiJ9"])
def test_structurally_invalid_token_is_malformed(
    signer: TokenSigner, token: str
) -> None:
    with pytest.raises(MalformedTokenException):
        signer.verify(token, TokenAudience.SESSION_ACCESS)


@pytest.mark.parametrize("missing", ["name", "sub", "aud", "iss", "iat"])
def test_missing_required_claim_is_malformed(signer: TokenSigner, missing: str) -> None:
    token = encode_raw(raw_payload(**{missing: None}))

    with pytest.raises(MalformedTokenException):
        signer.verify(token)


def test_unknown_audience_value_is_malformed(signer: TokenSigner) -> None:
    token = encode_raw(raw_payload(aud="somebody-else"))

    with pytest.raises(MalformedTokenException):
        signer.verify(token)


def test_foreign_issuer_is_rejected(signer: TokenSigner) -> None:
    token = encode_raw(raw_payload(iss="someone-else"))

    with pytest.raises(UnauthorizedException):
        signer.verify(token, TokenAudience.SESSION_ACCESS)


def test_rotated_key_ring_keeps_verifying_older_tokens() -> None:
    old_signer = build_signer(keys={"v1": SECRET})
    new_signer = build_signer(keys={"v1": SECRET, "v2": OTHER_SECRET}, current_key_id="v2")
    claims = _claims(TokenAudience.SESSION_ACCESS, timedelta(hours=1))

    old_token = old_signer.sign(claims)
    new_token = new_signer.sign(claims)

    assert new_signer.verify(old_token, TokenAudience.SESSION_ACCESS) == claims
    assert new_signer.verify(new_token, TokenAudience.SESSION_ACCESS) == claims
    with pytest.raises(UnknownKeyVersionException):
        old_signer.verify(new_token, TokenAudience.SESSION_ACCESS)


def test_current_key_must_be_in_the_ring() -> None:
    with pytest.raises(ValueError):
        build_signer(keys={"v1": SECRET}, current_key_id="v2")


def test_from_config_uses_configured_key(settings) -> None:
    signer = TokenSigner.from_config(settings.jwt)

    assert signer.current_key_id == settings.jwt.KEY_ID
    assert signer.key_ids == frozenset({settings.jwt.KEY_ID})
    assert signer.issuer == settings.jwt.ISSUER


class _UnserializableClaims(TokenClaims):
    def to_payload(self):
        return {**super().to_payload(), "name": object()}


def test_unserializable_claims_raise_signing_error(signer: TokenSigner) -> None:
    claims = _UnserializableClaims.build(
        principal="alice",
        subject=1,
        audience=TokenAudience.SESSION_ACCESS,
        issuer=ISSUER,
        issued_at=NOW,
        expires_at=NOW + timedelta(hours=1),
    )

    with pytest.raises(SigningException):
        signer.sign(claims)
