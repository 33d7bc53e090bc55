"""HTTP clients provider for dependency injection."""

from collections.abc import AsyncIterator

import httpx
from dishka import Provider, Scope, provide

from checkout_guard.api.modules.validation.services.network import (
    CaptchaGateway,
    GeolocationClient,
)
from checkout_guard.settings import Config


class HttpClientsProvider(Provider):
    """Provider for the shared HTTP client and the external service clients.

    A single ``httpx.AsyncClient`` lives for the whole application so that
    geolocation and captcha calls share one connection pool. Per-call
    timeouts come from ``CheckoutConfig`` and override the client default.
    """

    @provide(scope=Scope.APP)
    async def get_httpx_client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Provide httpx AsyncClient with connection pooling.

        Default configuration:
        - timeout: 10 seconds
        - connection limits: 100 total, 20 keep-alive
        - follow_redirects: enabled

        :return: Configured httpx AsyncClient instance
        """
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(10.0),
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            follow_redirects=True,
        ) as client:
            yield client

    @provide(scope=Scope.APP)
    def get_geolocation_client(
        self,
        client: httpx.AsyncClient,
        config: Config,
    ) -> GeolocationClient:
        return GeolocationClient(client, config.checkout)

    @provide(scope=Scope.APP)
    def get_captcha_gateway(
        self,
        client: httpx.AsyncClient,
        config: Config,
    ) -> CaptchaGateway:
        return CaptchaGateway.from_config(client, config.checkout)
