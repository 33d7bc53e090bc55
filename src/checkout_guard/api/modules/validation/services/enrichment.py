import logging
from datetime import timedelta

from checkout_guard.api.common.errors import ProviderDegradedError
from checkout_guard.api.modules.validation.models import GeolocationSource, IpGeolocation
from checkout_guard.api.modules.validation.schema import LocationData
from checkout_guard.api.modules.validation.services.network import GeolocationClient
from checkout_guard.api.modules.validation.services.network.geolocation import (
    unknown_location,
)
from checkout_guard.database.base import utcnow
from checkout_guard.database.uow import UnitOfWork
from checkout_guard.settings import CheckoutConfig

logger = logging.getLogger(__name__)


def location_from_cache(row: IpGeolocation) -> LocationData:
    return LocationData(
        ip=row.ip_address,
        country=row.country,
        country_code=row.country_code,
        region=row.region,
        city=row.city,
        zip_code=row.zip_code,
        latitude=row.latitude,
        longitude=row.longitude,
        timezone=row.timezone,
        isp=row.isp,
        is_vpn=row.is_vpn,
        is_proxy=row.is_proxy,
        is_tor=row.is_tor,
        threat_level=row.threat_level or "low",
    )


class GeolocationEnrichmentService:
    """Turns an IP into location and anonymization signals.

    Never raises: provider failures degrade to an "Unknown" low-threat
    location and cache failures are logged.
    """

    def __init__(
        self,
        geo_client: GeolocationClient,
        uow: UnitOfWork,
        config: CheckoutConfig,
    ):
        self._geo_client = geo_client
        self._uow = uow
        self._cache_ttl = timedelta(seconds=max(0, config.geolocation_cache_ttl_seconds))

    async def enrich(self, ip: str) -> LocationData:
        provider_mode = self._geo_client.is_configured()
        if provider_mode and self._cache_ttl:
            cached = await self._read_cache(ip)
            if cached is not None:
                return cached

        try:
            location = await self._geo_client.lookup(ip)
        except ProviderDegradedError:
            return unknown_location(ip)
        except Exception:
            logger.exception("Geolocation lookup raised", extra={"ip": ip})
            return unknown_location(ip)

        await self._write_cache(ip, location, "provider" if provider_mode else "offline")
        return location

    async def purge_expired(self) -> int:
        cutoff = utcnow() - self._cache_ttl
        deleted = await self._uow.geolocations.delete_updated_before(cutoff)
        await self._uow.commit()
        logger.info("Purged %d expired geolocation rows", deleted)
        return deleted

    async def _read_cache(self, ip: str) -> LocationData | None:
        try:
            row = await self._uow.geolocations.get_fresh(ip, utcnow() - self._cache_ttl)
        except Exception:
            logger.exception("Failed to read geolocation cache", extra={"ip": ip})
            await self._uow.rollback()
            return None
        if row is None:
            return None
        logger.debug("Geolocation cache hit for %s", ip)
        return location_from_cache(row)

    async def _write_cache(
        self,
        ip: str,
        location: LocationData,
        source: GeolocationSource,
    ) -> None:
        try:
            await self._uow.geolocations.upsert(
                ip,
                country=location.country,
                country_code=location.country_code,
                region=location.region,
                city=location.city,
                zip_code=location.zip_code,
                latitude=location.latitude,
                longitude=location.longitude,
                timezone=location.timezone,
                isp=location.isp,
                is_vpn=bool(location.is_vpn),
                is_proxy=bool(location.is_proxy),
                is_tor=bool(location.is_tor),
                threat_level=location.threat_level,
                source=source,
            )
            await self._uow.commit()
        except Exception:
            logger.exception("Failed to store geolocation", extra={"ip": ip})
            await self._uow.rollback()


__all__ = ("GeolocationEnrichmentService", "location_from_cache")
