from collections.abc import AsyncGenerator, Generator
import os

os.environ.setdefault("TESTING", "true")

from fastapi import FastAPI  # noqa: E402
import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from authcore.core.redis.dependencies import get_redis_client  # noqa: E402
from authcore.main.config import Config, get_settings  # noqa: E402
from authcore.main.web import get_application  # noqa: E402
from authcore.user.access_tokens.registry import PersonalAccessTokenRegistry  # noqa: E402
from authcore.user.auth.cookies import SessionCookieManager  # noqa: E402
from authcore.user.auth.security import TokenIssuer, get_token_signer  # noqa: E402
from authcore.user.auth.signer import TokenSigner  # noqa: E402
from authcore.user.dependencies import get_user_lookup  # noqa: E402
from authcore.user.settings.store import UserSettingStore  # noqa: E402
from tests.factories.token_factory import (  # noqa: E402
    FixedClock,
    build_cookie_manager,
    build_issuer,
    build_signer,
)
from tests.fakes.redis import InMemoryRedis  # noqa: E402
from tests.fakes.users import InMemoryUserLookup  # noqa: E402
from tests.helpers.overrides import DependencyOverrides  # noqa: E402


@pytest.fixture(scope="session")
def settings() -> Config:
    return get_settings()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def signer(clock: FixedClock) -> TokenSigner:
    return build_signer(clock=clock)


@pytest.fixture
def issuer(signer: TokenSigner) -> TokenIssuer:
    return build_issuer(signer)


@pytest.fixture
def cookie_manager(issuer: TokenIssuer) -> SessionCookieManager:
    return build_cookie_manager(issuer)


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def setting_store(fake_redis: InMemoryRedis) -> UserSettingStore:
    return UserSettingStore(fake_redis, max_retries=5)


@pytest.fixture
def registry(
    setting_store: UserSettingStore, issuer: TokenIssuer
) -> PersonalAccessTokenRegistry:
    return PersonalAccessTokenRegistry(setting_store, issuer)


@pytest.fixture
def user_lookup() -> InMemoryUserLookup:
    return InMemoryUserLookup()


@pytest.fixture
def app() -> FastAPI:
    return get_application()


@pytest.fixture
def dependency_overrides(app: FastAPI) -> Generator[DependencyOverrides]:
    overrides = DependencyOverrides(app)
    yield overrides
    overrides.reset()


@pytest.fixture
def app_with_fakes(
    app: FastAPI,
    dependency_overrides: DependencyOverrides,
    fake_redis: InMemoryRedis,
    user_lookup: InMemoryUserLookup,
    signer: TokenSigner,
) -> FastAPI:
    dependency_overrides.provide(get_redis_client, fake_redis)
    dependency_overrides.provide(get_user_lookup, user_lookup)
    dependency_overrides.provide(get_token_signer, signer)
    return app


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client


@pytest_asyncio.fixture
async def async_client_with_fakes(
    app_with_fakes: FastAPI,
) -> AsyncGenerator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app_with_fakes)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        yield client
