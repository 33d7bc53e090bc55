from checkout_guard.api.modules.validation.services.enrichment import (
    GeolocationEnrichmentService,
)
from checkout_guard.api.modules.validation.services.network import (
    CaptchaGateway,
    ClientIpResolver,
    GeolocationClient,
    RequestMeta,
)

__all__ = (
    "CaptchaGateway",
    "ClientIpResolver",
    "GeolocationClient",
    "GeolocationEnrichmentService",
    "RequestMeta",
)
