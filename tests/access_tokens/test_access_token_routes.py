from datetime import timedelta

import httpx
import pytest

from authcore.user.access_tokens.registry import PersonalAccessTokenRegistry
from authcore.user.auth.signer import TokenSigner
from authcore.user.enums import UserRole
from authcore.user.models import User
from tests.factories.token_factory import NOW, FixedClock, build_issuer
from tests.factories.user_factory import build_user
from tests.fakes.redis import InMemoryRedis
from tests.fakes.users import InMemoryUserLookup
from tests.helpers.cookies import cookie_header


@pytest.fixture
def alice(user_lookup: InMemoryUserLookup) -> User:
    return user_lookup.add(build_user(user_id=1, username="alice"))


@pytest.fixture
def bob(user_lookup: InMemoryUserLookup) -> User:
    return user_lookup.add(build_user(user_id=2, username="bob"))


@pytest.fixture
def admin(user_lookup: InMemoryUserLookup) -> User:
    return user_lookup.add(build_user(user_id=3, username="admin", role=UserRole.ADMIN))


def session_for(signer: TokenSigner, user: User) -> dict[str, str]:
    issuer = build_issuer(signer)
    return cookie_header(
        access_token=issuer.issue_session_access(user.username, user.id),
        refresh_token=issuer.issue_session_refresh(user.username, user.id),
    )


@pytest.mark.asyncio
async def test_list_own_tokens_starts_empty(
    async_client_with_fakes: httpx.AsyncClient, alice: User, signer: TokenSigner
) -> None:
    response = await async_client_with_fakes.get(
        "/v1/users/alice/access-tokens", headers=session_for(signer, alice)
    )

    assert response.status_code == 200
    assert response.json() == {"access_tokens": []}
    assert response.headers["cache-control"] == "no-store"


@pytest.mark.asyncio
async def test_create_then_list_own_token(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    signer: TokenSigner,
    clock: FixedClock,
) -> None:
    headers = session_for(signer, alice)

    created = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens",
        json={"description": "laptop", "expires_at": "2026-02-01T00:00:00Z"},
        headers=headers,
    )
    clock.advance(timedelta(seconds=1))
    second = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens", json={"description": "ci"}, headers=headers
    )
    listed = await async_client_with_fakes.get(
        "/v1/users/alice/access-tokens", headers=headers
    )

    assert created.status_code == 201
    body = created.json()
    assert body["description"] == "laptop"
    assert body["issued_at"] == "2026-01-01T12:00:00Z"
    assert body["expires_at"] == "2026-02-01T00:00:00Z"
    assert second.status_code == 201
    assert second.json()["expires_at"] is None
    assert [item["description"] for item in listed.json()["access_tokens"]] == [
        "laptop",
        "ci",
    ]


@pytest.mark.asyncio
async def test_create_with_past_expiry_is_rejected(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    signer: TokenSigner,
    fake_redis: InMemoryRedis,
) -> None:
    response = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens",
        json={"description": "old", "expires_at": "2025-12-31T00:00:00Z"},
        headers=session_for(signer, alice),
    )

    assert response.status_code == 400
    assert await fake_redis.get("user_setting:1:access_tokens") is None


@pytest.mark.asyncio
async def test_create_with_out_of_range_expiry_is_rejected(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    signer: TokenSigner,
    fake_redis: InMemoryRedis,
) -> None:
    response = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens",
        json={"description": "far", "expires_at": "9999-12-31T23:00:00-05:00"},
        headers=session_for(signer, alice),
    )

    assert response.status_code == 400
    assert response.json() == {
        "error": "Instance processing error",
        "message": "Access token expiry is out of range",
    }
    assert await fake_redis.get("user_setting:1:access_tokens") is None


@pytest.mark.asyncio
async def test_create_rejects_unknown_fields(
    async_client_with_fakes: httpx.AsyncClient, alice: User, signer: TokenSigner
) -> None:
    response = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens",
        json={"description": "x", "scope": "admin"},
        headers=session_for(signer, alice),
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_is_idempotent(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    signer: TokenSigner,
    registry: PersonalAccessTokenRegistry,
) -> None:
    created = await registry.create(alice, "cli")
    headers = session_for(signer, alice)
    url = f"/v1/users/alice/access-tokens/{created.access_token}"

    first = await async_client_with_fakes.delete(url, headers=headers)
    second = await async_client_with_fakes.delete(url, headers=headers)

    assert first.status_code == second.status_code == 200
    assert second.json() == {"success": True}
    assert await registry.list_tokens(alice.id) == []


@pytest.mark.asyncio
async def test_prune_reports_removed_count(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    signer: TokenSigner,
    registry: PersonalAccessTokenRegistry,
    clock: FixedClock,
) -> None:
    await registry.create(alice, "short", expires_at=NOW + timedelta(minutes=1))
    await registry.create(alice, "live")
    clock.advance(timedelta(hours=1))

    response = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens/prune", headers=session_for(signer, alice)
    )

    assert response.status_code == 200
    assert response.json() == {"removed": 1}


@pytest.mark.asyncio
async def test_regular_user_cannot_touch_other_users_tokens(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    bob: User,
    signer: TokenSigner,
) -> None:
    headers = session_for(signer, alice)

    listed = await async_client_with_fakes.get(
        "/v1/users/bob/access-tokens", headers=headers
    )
    created = await async_client_with_fakes.post(
        "/v1/users/bob/access-tokens", json={"description": "x"}, headers=headers
    )

    assert listed.status_code == created.status_code == 403
    # Failed authorization leaves the session alone.
    assert "set-cookie" not in listed.headers


@pytest.mark.asyncio
async def test_regular_user_gets_forbidden_even_for_unknown_target(
    async_client_with_fakes: httpx.AsyncClient, alice: User, signer: TokenSigner
) -> None:
    response = await async_client_with_fakes.get(
        "/v1/users/ghost/access-tokens", headers=session_for(signer, alice)
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_manages_tokens_of_another_user(
    async_client_with_fakes: httpx.AsyncClient,
    admin: User,
    bob: User,
    signer: TokenSigner,
    registry: PersonalAccessTokenRegistry,
) -> None:
    headers = session_for(signer, admin)

    created = await async_client_with_fakes.post(
        "/v1/users/bob/access-tokens", json={"description": "for bob"}, headers=headers
    )

    assert created.status_code == 201
    token = created.json()["access_token"]
    claims = signer.verify(token)
    assert claims.principal == "bob"
    assert claims.user_id == bob.id
    assert await registry.contains(bob.id, token)
    assert not await registry.contains(admin.id, token)

    deleted = await async_client_with_fakes.delete(
        f"/v1/users/bob/access-tokens/{token}", headers=headers
    )
    assert deleted.status_code == 200
    assert not await registry.contains(bob.id, token)


@pytest.mark.asyncio
async def test_admin_acting_on_missing_user_gets_not_found(
    async_client_with_fakes: httpx.AsyncClient, admin: User, signer: TokenSigner
) -> None:
    response = await async_client_with_fakes.get(
        "/v1/users/ghost/access-tokens", headers=session_for(signer, admin)
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_personal_token_authenticates_token_routes(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    registry: PersonalAccessTokenRegistry,
) -> None:
    created = await registry.create(alice, "cli")

    response = await async_client_with_fakes.get(
        "/v1/users/alice/access-tokens",
        headers={"Authorization": f"Bearer {created.access_token}"},
    )

    assert response.status_code == 200
    assert [item["access_token"] for item in response.json()["access_tokens"]] == [
        created.access_token
    ]


@pytest.mark.asyncio
async def test_token_routes_require_authentication(
    async_client_with_fakes: httpx.AsyncClient, alice: User
) -> None:
    response = await async_client_with_fakes.get("/v1/users/alice/access-tokens")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_store_failure_surfaces_without_cookie_side_effects(
    async_client_with_fakes: httpx.AsyncClient,
    alice: User,
    signer: TokenSigner,
    fake_redis: InMemoryRedis,
) -> None:
    fake_redis.inject_conflicts(100)

    response = await async_client_with_fakes.post(
        "/v1/users/alice/access-tokens",
        json={"description": "lost"},
        headers=session_for(signer, alice),
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Infrastructure error"
    assert "set-cookie" not in response.headers
