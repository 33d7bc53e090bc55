from checkout_guard.api.modules.validation.services.network.captcha import (
    CaptchaContext,
    CaptchaGateway,
    CaptchaVerificationResult,
)
from checkout_guard.api.modules.validation.services.network.common import (
    ClientIpResolver,
    RequestMeta,
    is_private_ip,
)
from checkout_guard.api.modules.validation.services.network.geolocation import (
    GeolocationClient,
    offline_location,
    threat_level_for,
)

__all__ = (
    "CaptchaContext",
    "CaptchaGateway",
    "CaptchaVerificationResult",
    "ClientIpResolver",
    "GeolocationClient",
    "RequestMeta",
    "is_private_ip",
    "offline_location",
    "threat_level_for",
)
