from collections.abc import AsyncIterator

from dishka import AsyncContainer, Provider, Scope, make_async_container, provide
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

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
from checkout_guard.clients.providers import HttpClientsProvider
from checkout_guard.database.engine import create_engine, create_session_factory
from checkout_guard.database.uow import UnitOfWork
from checkout_guard.settings import Config, get_config


class AppProvider(Provider):
    """Application provider for dependency injection."""

    @provide(scope=Scope.APP)
    def get_config(self) -> Config:
        return get_config()


class DatabaseProvider(Provider):
    """Engine per application, session and unit of work per request."""

    @provide(scope=Scope.APP)
    async def get_engine(self, config: Config) -> AsyncIterator[AsyncEngine]:
        engine = create_engine(config)
        yield engine
        await engine.dispose()

    @provide(scope=Scope.APP)
    def get_session_factory(self, engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
        return create_session_factory(engine)

    @provide(scope=Scope.REQUEST)
    async def get_session(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    @provide(scope=Scope.REQUEST)
    def get_uow(self, session: AsyncSession) -> UnitOfWork:
        return UnitOfWork(session)


class ServicesProvider(Provider):
    """Services provider for dependency injection."""

    @provide(scope=Scope.APP)
    def get_client_ip_resolver(self, config: Config) -> ClientIpResolver:
        return ClientIpResolver(config.checkout)

    @provide(scope=Scope.REQUEST)
    def get_enrichment_service(
        self,
        config: Config,
        geo_client: GeolocationClient,
        uow: UnitOfWork,
    ) -> GeolocationEnrichmentService:
        return GeolocationEnrichmentService(
            geo_client=geo_client,
            uow=uow,
            config=config.checkout,
        )

    @provide(scope=Scope.REQUEST)
    def get_stats_aggregator(self, uow: UnitOfWork) -> StatsAggregator:
        return StatsAggregator(uow.validations)

    @provide(scope=Scope.REQUEST)
    def get_validation_facade_service(
        self,
        config: Config,
        ip_resolver: ClientIpResolver,
        enrichment: GeolocationEnrichmentService,
        captcha_gateway: CaptchaGateway,
        stats: StatsAggregator,
        uow: UnitOfWork,
    ) -> ValidationFacadeService:
        return ValidationFacadeService(
            config=config,
            ip_resolver=ip_resolver,
            enrichment=enrichment,
            captcha_gateway=captcha_gateway,
            stats=stats,
            uow=uow,
        )


def get_async_container(*providers: Provider) -> AsyncContainer:
    """Build the container; extra providers override the defaults (tests)."""
    return make_async_container(
        AppProvider(),
        DatabaseProvider(),
        ServicesProvider(),
        HttpClientsProvider(),
        *providers,
    )
