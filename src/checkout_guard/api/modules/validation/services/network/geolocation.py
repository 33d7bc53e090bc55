import logging
from typing import Any

import httpx

from checkout_guard.api.common.errors import ProviderDegradedError
from checkout_guard.api.modules.validation.schema import LocationData, ThreatLevel
from checkout_guard.api.modules.validation.services.network.http import (
    request_with_retry,
)
from checkout_guard.settings import CheckoutConfig

logger = logging.getLogger(__name__)

# Loopback is not listed: the offline table maps it to the residential default.
OFFLINE_LOCAL_PREFIXES = ("192.168.", "10.", "172.")
SIMULATED_VPN_MARKERS = ("5.5.5.", "9.9.9.")


def threat_level_for(security: dict[str, Any] | None) -> ThreatLevel:
    if not security:
        return "low"

    score = _parse_float(security.get("threat_score")) or 0.0
    if security.get("is_tor") or score > 0.7:
        return "high"
    if security.get("is_vpn") or security.get("is_proxy") or score > 0.3:
        return "medium"
    return "low"


def _parse_float(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _as_text(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def offline_location(ip: str) -> LocationData:
    """Deterministic stand-in used when no provider key is configured."""
    if ip.startswith(OFFLINE_LOCAL_PREFIXES):
        return LocationData(
            ip=ip,
            country="United States",
            country_code="US",
            region="Local Network",
            city="Local",
            isp="Private Network",
            is_vpn=False,
            is_proxy=False,
            is_tor=False,
            threat_level="low",
        )

    if any(marker in ip for marker in SIMULATED_VPN_MARKERS):
        return LocationData(
            ip=ip,
            country="Netherlands",
            country_code="NL",
            region="North Holland",
            city="Amsterdam",
            isp="VPN Service Provider",
            is_vpn=True,
            is_proxy=False,
            is_tor=False,
            threat_level="medium",
        )

    return LocationData(
        ip=ip,
        country="United States",
        country_code="US",
        region="California",
        city="San Francisco",
        zip_code="94103",
        latitude="37.7749",
        longitude="-122.4194",
        timezone="America/Los_Angeles",
        isp="Residential ISP",
        is_vpn=False,
        is_proxy=False,
        is_tor=False,
        threat_level="low",
    )


def unknown_location(ip: str) -> LocationData:
    return LocationData(ip=ip, country="Unknown", threat_level="low")


def map_provider_payload(ip: str, data: dict[str, Any]) -> LocationData:
    security = data.get("security") if isinstance(data.get("security"), dict) else None
    timezone = data.get("timezone") if isinstance(data.get("timezone"), dict) else {}
    connection = data.get("connection") if isinstance(data.get("connection"), dict) else {}

    country_code = data.get("country_code")
    return LocationData(
        ip=_as_text(data.get("ip_address")) or ip,
        country=_as_text(data.get("country")),
        country_code=country_code.upper() if isinstance(country_code, str) else None,
        region=_as_text(data.get("region")),
        city=_as_text(data.get("city")),
        zip_code=_as_text(data.get("postal_code")),
        latitude=_as_text(data.get("latitude")),
        longitude=_as_text(data.get("longitude")),
        timezone=_as_text(timezone.get("name")),
        isp=_as_text(connection.get("isp_name")),
        is_vpn=bool(security and security.get("is_vpn")),
        is_proxy=bool(security and security.get("is_proxy")),
        is_tor=bool(security and security.get("is_tor")),
        threat_level=threat_level_for(security),
    )


class GeolocationClient:
    def __init__(self, client: httpx.AsyncClient, config: CheckoutConfig):
        self._client = client
        self._api_key = config.geolocation_api_key
        self._api_url = config.geolocation_api_url
        self._timeout = config.geolocation_timeout_seconds
        self._retry = config.geolocation_retry_transport_errors

    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def lookup(self, ip: str) -> LocationData:
        """Resolve ``ip`` through the provider, or the offline table without a key.

        Raises ``ProviderDegradedError`` when the provider cannot answer.
        """
        if not self.is_configured():
            logger.debug("No geolocation key configured, using offline data")
            return offline_location(ip)

        try:
            response = await request_with_retry(
                self._client,
                "GET",
                self._api_url,
                params={"api_key": self._api_key, "ip_address": ip},
                timeout=self._timeout,
                retry_transport_errors=self._retry,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to resolve IP geolocation", extra={"ip": ip})
            logger.debug("IP geolocation lookup failed: %s", exc)
            raise ProviderDegradedError("Geolocation provider unavailable") from exc

        if not isinstance(data, dict):
            logger.warning("IP geolocation returned unexpected payload", extra={"ip": ip})
            raise ProviderDegradedError("Geolocation provider returned an unexpected payload")

        return map_provider_payload(ip, data)


__all__ = (
    "GeolocationClient",
    "map_provider_payload",
    "offline_location",
    "threat_level_for",
    "unknown_location",
)
