import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import Request
from yarl import URL

from checkout_guard.api.common.errors import (
    CheckoutGuardError,
    ForbiddenError,
    InternalFaultError,
    NotFoundError,
)
from checkout_guard.api.modules.validation.models import UserValidation
from checkout_guard.api.modules.validation.schema import (
    CaptchaData,
    CaptchaRequest,
    CaptchaResponse,
    LocationSummary,
    ProceedCheckoutRequest,
    ProceedCheckoutResponse,
    ValidateUserRequest,
    ValidateUserResponse,
    ValidationCountsResponse,
    ValidationRecordResponse,
    ValidationSettingResponse,
    ValidationStatsResponse,
    WidgetConfigResponse,
)
from checkout_guard.api.modules.validation.services.core import (
    EventKind,
    StatsAggregator,
    ValidationCounts,
    conversion_rate,
    score_risk,
)
from checkout_guard.api.modules.validation.services.enrichment import (
    GeolocationEnrichmentService,
)
from checkout_guard.api.modules.validation.services.network import (
    CaptchaContext,
    CaptchaGateway,
    ClientIpResolver,
    RequestMeta,
)
from checkout_guard.database.base import utcnow
from checkout_guard.database.uow import UnitOfWork
from checkout_guard.settings import Config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def internal_fault(uow: UnitOfWork, message: str) -> AsyncIterator[None]:
    """Surface unexpected failures generically; details stay in the logs."""
    try:
        yield
    except CheckoutGuardError:
        raise
    except Exception as exc:
        logger.exception(message)
        await uow.rollback()
        raise InternalFaultError(message) from exc


def _counts_response(counts: ValidationCounts) -> ValidationCountsResponse:
    return ValidationCountsResponse(
        total=counts.total,
        passed=counts.passed,
        failed=counts.failed,
        bot_count=counts.bot_count,
    )


class ValidationFacadeService:
    def __init__(
        self,
        config: Config,
        ip_resolver: ClientIpResolver,
        enrichment: GeolocationEnrichmentService,
        captcha_gateway: CaptchaGateway,
        stats: StatsAggregator,
        uow: UnitOfWork,
    ):
        self._config = config
        self._ip_resolver = ip_resolver
        self._enrichment = enrichment
        self._captcha_gateway = captcha_gateway
        self._stats = stats
        self._uow = uow

    async def check_request(
        self,
        request: Request,
        payload: ValidateUserRequest,
    ) -> ValidateUserResponse:
        ip_address = self._ip_resolver.resolve(RequestMeta.from_request(request))
        logger.debug("Client IP detected: %s", ip_address)
        return await self.create_evaluation(
            session_id=payload.session_id,
            ip_address=ip_address,
            user_agent=payload.user_agent or request.headers.get("user-agent"),
            cart_value=payload.cart_value,
            cart_items=payload.cart_items,
        )

    async def create_evaluation(
        self,
        session_id: str,
        ip_address: str,
        user_agent: str | None = None,
        cart_value: int | None = None,
        cart_items: int | None = None,
    ) -> ValidateUserResponse:
        async with internal_fault(self._uow, "Validation failed"):
            location = await self._enrichment.enrich(ip_address)
            assessment = score_risk(location, user_agent)
            logger.info(
                "Risk evaluated for session %s: score=%d recommendation=%s",
                session_id,
                assessment.risk_score,
                assessment.recommendation,
            )

            snapshot = location.snapshot()
            validation = await self._uow.validations.create(
                UserValidation(
                    session_id=session_id,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    cart_value=cart_value,
                    cart_items=cart_items,
                    validation_type="ip_check",
                    validation_result="passed" if assessment.is_valid else "failed",
                    risk_score=assessment.risk_score,
                    location_data=snapshot,
                    captcha_data=None,
                    is_bot=assessment.is_bot,
                    proceed_to_checkout=False,
                    completed_order=False,
                )
            )
            await self._uow.events.append(
                validation_id=validation.id,
                session_id=session_id,
                kind=EventKind.IP_CHECK,
                payload={
                    "riskScore": assessment.risk_score,
                    "riskFactors": assessment.risk_factors,
                    "recommendation": assessment.recommendation,
                    "location": snapshot,
                },
            )
            await self._uow.commit()

        return ValidateUserResponse(
            validation_id=validation.id,
            is_valid=assessment.is_valid,
            risk_score=assessment.risk_score,
            recommendation=assessment.recommendation,
            risk_factors=list(assessment.risk_factors),
            requires_captcha=assessment.recommendation == "challenge",
            blocked=assessment.recommendation == "block",
            location=LocationSummary(country=location.country, city=location.city),
        )

    async def submit_captcha(self, payload: CaptchaRequest) -> CaptchaResponse:
        async with internal_fault(self._uow, "CAPTCHA validation failed"):
            validation = await self._uow.validations.get_by_id(payload.validation_id)
            if validation is None:
                raise NotFoundError("Validation record not found")

            verified = await self._captcha_gateway.verify(
                payload.captcha_response,
                payload.captcha_type,
                CaptchaContext(ip=validation.ip_address, user_agent=validation.user_agent),
            )
            captcha_data = CaptchaData(
                type=payload.captcha_type or "unknown",
                verified_at=utcnow(),
                verified=verified,
            ).model_dump(mode="json", by_alias=True)

            updated = await self._uow.validations.update_fields(
                validation.id,
                validation_type="captcha",
                validation_result="passed" if verified else "failed",
                captcha_data=captcha_data,
            )
            if not updated:
                raise NotFoundError("Validation record not found")

            await self._uow.events.append(
                validation_id=validation.id,
                session_id=validation.session_id,
                kind=EventKind.CAPTCHA_OUTCOME,
                payload=captcha_data,
            )
            await self._uow.commit()

        return CaptchaResponse(
            success=verified,
            message=(
                "CAPTCHA verified successfully" if verified else "CAPTCHA verification failed"
            ),
            validation_id=validation.id,
        )

    async def mark_proceed(self, payload: ProceedCheckoutRequest) -> ProceedCheckoutResponse:
        async with internal_fault(self._uow, "Failed to track checkout proceed"):
            validation: UserValidation | None = None
            if payload.validation_id:
                validation = await self._uow.validations.get_by_id(payload.validation_id)
            elif payload.session_id:
                validation = await self._uow.validations.get_latest_for_session(
                    payload.session_id
                )

            if validation is None:
                # Permissive on purpose: the storefront script fires and forgets.
                logger.warning(
                    "Proceed-to-checkout did not match any validation",
                    extra={
                        "validation_id": payload.validation_id,
                        "session_id": payload.session_id,
                    },
                )
                return ProceedCheckoutResponse(success=True, matched=False)

            await self._uow.validations.update_fields(
                validation.id,
                proceed_to_checkout=True,
            )
            await self._uow.events.append(
                validation_id=validation.id,
                session_id=validation.session_id,
                kind=EventKind.PROCEEDED,
                payload={"proceedToCheckout": True},
            )
            await self._uow.commit()

        return ProceedCheckoutResponse(success=True, matched=True)

    async def get_stats(self) -> ValidationStatsResponse:
        async with internal_fault(self._uow, "Failed to get validation stats"):
            overall = await self._stats.aggregate()
            since = utcnow() - timedelta(days=self._config.checkout.stats_recent_days)
            recent = await self._stats.aggregate(since=since)

        return ValidationStatsResponse(
            total=overall.total,
            passed=overall.passed,
            failed=overall.failed,
            bot_count=overall.bot_count,
            conversion_rate=f"{conversion_rate(overall.completed_orders, overall.total)}%",
            recent_validations=recent.total,
            proceed_to_checkout=recent.proceeded,
            recent=_counts_response(recent),
        )

    async def list_recent(
        self,
        limit: int | None = None,
        days: int | None = None,
    ) -> list[ValidationRecordResponse]:
        checkout = self._config.checkout
        limit = min(limit or checkout.recent_default_limit, checkout.recent_max_limit)
        days = days or checkout.recent_default_days

        async with internal_fault(self._uow, "Failed to get recent validations"):
            items = await self._uow.validations.get_recent(
                since=utcnow() - timedelta(days=days),
                limit=limit,
            )
        return [ValidationRecordResponse.model_validate(item) for item in items]

    def get_widget_config(
        self,
        origin: str | None,
        referer: str | None,
        host: str | None,
    ) -> WidgetConfigResponse:
        if not origin and not referer:
            logger.warning("Config request missing both Origin and Referer headers")
            raise ForbiddenError("Access denied - missing headers")

        allowed = {item.lower() for item in self._config.checkout.config_allowed_hosts}
        if not any(_hostname(value) in allowed for value in (origin, referer) if value):
            logger.warning(
                "Config request from unauthorized domain",
                extra={"origin": origin, "referer": referer},
            )
            raise ForbiddenError("Access denied")

        base_url = self._config.api.public_base_url
        if base_url:
            api_base_url = str(URL(base_url.rstrip("/")) / "api" / "validation")
        else:
            api_base_url = f"https://{host or 'localhost'}/api/validation"
        return WidgetConfigResponse(
            site_key=self._config.checkout.recaptcha_site_key,
            api_base_url=api_base_url,
        )

    async def list_settings(self) -> list[ValidationSettingResponse]:
        items = await self._uow.settings.get_all()
        return [ValidationSettingResponse.model_validate(item) for item in items]

    async def get_setting(self, key: str) -> ValidationSettingResponse:
        setting = await self._uow.settings.get_by_key(key)
        if setting is None:
            raise NotFoundError(f"Validation setting '{key}' not found")
        return ValidationSettingResponse.model_validate(setting)

    async def upsert_setting(
        self,
        key: str,
        value: object,
        description: str | None = None,
    ) -> ValidationSettingResponse:
        async with internal_fault(self._uow, "Failed to save validation setting"):
            setting = await self._uow.settings.upsert(key, value, description)
            await self._uow.commit()
        return ValidationSettingResponse.model_validate(setting)

    async def purge_geolocations(self) -> int:
        async with internal_fault(self._uow, "Failed to purge geolocation cache"):
            return await self._enrichment.purge_expired()


def _hostname(value: str) -> str | None:
    try:
        host = URL(value).host
    except (TypeError, ValueError):
        return None
    return host.lower() if host else None


__all__ = ("ValidationFacadeService", "internal_fault")
