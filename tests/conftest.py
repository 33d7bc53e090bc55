"""
Pytest fixtures for checkout-guard tests.

Everything runs against an in-memory SQLite database and, unless a test
says otherwise, the offline geolocation table (no provider key configured).
"""

from collections.abc import AsyncGenerator, Callable
from typing import Any

import httpx
import pytest
from dishka import Provider, Scope, provide
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import checkout_guard.api.modules.validation.models  # noqa: F401
from checkout_guard.api.modules.validation.service import ValidationFacadeService
from checkout_guard.api.modules.validation.services.core import StatsAggregator
from checkout_guard.api.modules.validation.services.enrichment import (
    GeolocationEnrichmentService,
)
from checkout_guard.api.modules.validation.services.network import (
    CaptchaGateway,
    ClientIpResolver,
    GeolocationClient,
)
from checkout_guard.application import create_app
from checkout_guard.database.base import Base
from checkout_guard.database.engine import create_session_factory
from checkout_guard.database.uow import UnitOfWork
from checkout_guard.ioc import get_async_container
from checkout_guard.settings import APIConfig, CheckoutConfig, Config

SQLITE_URL = "sqlite+aiosqlite://"
TEST_API_KEY = "test-api-key"

Handler = Callable[[httpx.Request], httpx.Response]


def make_config(**checkout: Any) -> Config:
    return Config(
        env="local",
        database_dsn=SQLITE_URL,
        api=APIConfig(allowed_hosts=["*"]),
        checkout=CheckoutConfig(**checkout),
    )


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        SQLITE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def uow(session: AsyncSession) -> UnitOfWork:
    return UnitOfWork(session)


@pytest.fixture
def config() -> Config:
    return make_config()


def offline_handler(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected outbound request: {request.method} {request.url}")


@pytest.fixture
def provider_handler() -> Handler:
    """Override to fake geolocation / captcha provider responses."""
    return offline_handler


@pytest.fixture
async def http_client(provider_handler: Handler) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(provider_handler)) as client:
        yield client


@pytest.fixture
def facade_factory(
    http_client: httpx.AsyncClient,
    uow: UnitOfWork,
) -> Callable[[Config], ValidationFacadeService]:
    def build(config: Config) -> ValidationFacadeService:
        return ValidationFacadeService(
            config=config,
            ip_resolver=ClientIpResolver(config.checkout),
            enrichment=GeolocationEnrichmentService(
                geo_client=GeolocationClient(http_client, config.checkout),
                uow=uow,
                config=config.checkout,
            ),
            captcha_gateway=CaptchaGateway.from_config(http_client, config.checkout),
            stats=StatsAggregator(uow.validations),
            uow=uow,
        )

    return build


@pytest.fixture
def facade(
    facade_factory: Callable[[Config], ValidationFacadeService],
    config: Config,
) -> ValidationFacadeService:
    return facade_factory(config)


class _TestProvider(Provider):
    def __init__(self, config: Config, engine: AsyncEngine, client: httpx.AsyncClient):
        super().__init__()
        self._config = config
        self._engine = engine
        self._client = client

    @provide(scope=Scope.APP)
    def get_config(self) -> Config:
        return self._config

    @provide(scope=Scope.APP)
    def get_engine(self) -> AsyncEngine:
        return self._engine

    @provide(scope=Scope.APP)
    def get_httpx_client(self) -> httpx.AsyncClient:
        return self._client


@pytest.fixture
def app_config() -> Config:
    config = make_config()
    config.api.api_key = TEST_API_KEY
    return config


@pytest.fixture
async def client(
    app_config: Config,
    engine: AsyncEngine,
    http_client: httpx.AsyncClient,
) -> AsyncGenerator[AsyncClient, None]:
    container = get_async_container(_TestProvider(app_config, engine, http_client))
    app = create_app(app_config, container)
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    await container.close()
