import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx
from yarl import URL

from checkout_guard.api.modules.validation.services.network.http import (
    request_with_retry,
)
from checkout_guard.settings import CheckoutConfig

logger = logging.getLogger(__name__)

MOCK_TOKEN_PREFIX = "mock-captcha-response-"
MOCK_TOKEN_MIN_LENGTH = 20
MOCK_TOKEN_MAX_LENGTH = 100

DEFAULT_CAPTCHA_TYPE = "recaptcha"


@dataclass(slots=True, frozen=True)
class CaptchaContext:
    ip: str | None = None
    user_agent: str | None = None


@dataclass(slots=True)
class CaptchaVerificationResult:
    success: bool
    error_codes: list[str] = field(default_factory=list)
    score: float | None = None


def passes_threshold(score: object, threshold: float) -> bool:
    """No score means the provider gave a plain pass."""
    if score is None:
        return True
    try:
        return float(score) >= threshold  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False


class CaptchaVerifier(ABC):
    provider: str

    @abstractmethod
    async def verify(self, token: str, context: CaptchaContext) -> CaptchaVerificationResult:
        raise NotImplementedError


class MockCaptchaVerifier(CaptchaVerifier):
    provider = "mock"

    async def verify(self, token: str, context: CaptchaContext) -> CaptchaVerificationResult:
        valid = (
            token.startswith(MOCK_TOKEN_PREFIX)
            and MOCK_TOKEN_MIN_LENGTH <= len(token) <= MOCK_TOKEN_MAX_LENGTH
        )
        return CaptchaVerificationResult(
            success=valid,
            error_codes=[] if valid else ["mock_token_invalid"],
        )


class _HttpCaptchaVerifier(CaptchaVerifier):
    def __init__(self, client: httpx.AsyncClient, config: CheckoutConfig):
        self._client = client
        self._timeout = config.captcha_timeout_seconds
        self._retry = config.captcha_retry_transport_errors
        self._threshold = config.captcha_score_threshold

    @abstractmethod
    def is_configured(self) -> bool:
        raise NotImplementedError

    async def _send(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> tuple[dict[str, Any] | None, list[str]]:
        try:
            response = await request_with_retry(
                self._client,
                method,
                url,
                timeout=self._timeout,
                retry_transport_errors=self._retry,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.warning(
                "Captcha verification request failed",
                extra={"provider": self.provider},
            )
            logger.debug("Captcha verification network error: %s", exc)
            return None, [f"{self.provider}_network_error"]

        if response.status_code >= 400:
            logger.warning(
                "Captcha verification returned error status",
                extra={"provider": self.provider, "status_code": response.status_code},
            )
            return None, [f"{self.provider}_http_{response.status_code}"]

        try:
            data = response.json()
        except ValueError as exc:
            logger.warning(
                "Captcha verification returned non-JSON response",
                extra={"provider": self.provider, "status_code": response.status_code},
            )
            logger.debug("Captcha verification JSON decode error: %s", exc)
            return None, [f"{self.provider}_http_{response.status_code}"]

        if not isinstance(data, dict):
            return None, [f"{self.provider}_bad_payload"]
        return data, []


class RecaptchaSiteVerifier(_HttpCaptchaVerifier):
    """reCAPTCHA v2 / v3 siteverify endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: CheckoutConfig,
        provider: str = "recaptcha_v3",
    ):
        super().__init__(client, config)
        self.provider = provider
        self._secret_key = config.recaptcha_secret_key
        self._verify_url = config.recaptcha_verify_url

    def is_configured(self) -> bool:
        return bool(self._secret_key and self._verify_url)

    async def verify(self, token: str, context: CaptchaContext) -> CaptchaVerificationResult:
        if not self.is_configured():
            logger.error("reCAPTCHA secret key is not configured")
            return CaptchaVerificationResult(
                success=False,
                error_codes=[f"{self.provider}_not_configured"],
            )

        form: dict[str, str] = {
            "secret": self._secret_key or "",
            "response": token,
        }
        if context.ip:
            form["remoteip"] = context.ip

        data, codes = await self._send("POST", self._verify_url, data=form)
        if data is None:
            return CaptchaVerificationResult(success=False, error_codes=codes)

        raw_codes = data.get("error-codes") or []
        if isinstance(raw_codes, str):
            raw_codes = [raw_codes]
        codes = [str(item) for item in raw_codes if item] if isinstance(raw_codes, list) else []

        if not data.get("success"):
            return CaptchaVerificationResult(success=False, error_codes=codes)

        score = data.get("score")
        passed = passes_threshold(score, self._threshold)
        if not passed:
            logger.info(
                "reCAPTCHA score below threshold",
                extra={"score": score, "threshold": self._threshold},
            )
        return CaptchaVerificationResult(
            success=passed,
            error_codes=codes if passed else [*codes, "score_below_threshold"],
            score=_as_score(score),
        )


class RecaptchaEnterpriseVerifier(_HttpCaptchaVerifier):
    provider = "recaptcha_enterprise"

    def __init__(self, client: httpx.AsyncClient, config: CheckoutConfig):
        super().__init__(client, config)
        self._project_id = config.recaptcha_project_id
        self._api_key = config.recaptcha_api_key
        self._site_key = config.recaptcha_site_key
        self._base_url = config.recaptcha_enterprise_url.rstrip("/")
        self._expected_action = config.recaptcha_expected_action

    def is_configured(self) -> bool:
        return bool(self._project_id and self._api_key)

    def assessment_url(self) -> str:
        url = URL(self._base_url) / "projects" / (self._project_id or "") / "assessments"
        return str(url.with_query(key=self._api_key or ""))

    async def verify(self, token: str, context: CaptchaContext) -> CaptchaVerificationResult:
        if not self.is_configured():
            logger.error("reCAPTCHA Enterprise credentials are not configured")
            return CaptchaVerificationResult(
                success=False,
                error_codes=["recaptcha_enterprise_not_configured"],
            )

        body = {
            "event": {
                "token": token,
                "siteKey": self._site_key or "",
                "userAgent": context.user_agent or "",
                "userIpAddress": context.ip or "",
                "expectedAction": self._expected_action,
            }
        }
        data, codes = await self._send("POST", self.assessment_url(), json=body)
        if data is None:
            return CaptchaVerificationResult(success=False, error_codes=codes)

        token_properties = data.get("tokenProperties") or {}
        if not token_properties.get("valid"):
            reason = token_properties.get("invalidReason") or "UNKNOWN"
            logger.info("reCAPTCHA Enterprise token invalid: %s", reason)
            return CaptchaVerificationResult(success=False, error_codes=[str(reason).lower()])

        action = token_properties.get("action")
        if action != self._expected_action:
            logger.warning(
                "reCAPTCHA Enterprise action mismatch",
                extra={"expected": self._expected_action, "actual": action},
            )

        score = (data.get("riskAnalysis") or {}).get("score")
        passed = passes_threshold(score, self._threshold)
        return CaptchaVerificationResult(
            success=passed,
            error_codes=[] if passed else ["score_below_threshold"],
            score=_as_score(score),
        )


def _as_score(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


class CaptchaGateway:
    """Dispatches a token to the verifier registered for its declared type."""

    def __init__(self, verifiers: dict[str, CaptchaVerifier]):
        self._verifiers = {key.lower(): verifier for key, verifier in verifiers.items()}

    @classmethod
    def from_config(cls, client: httpx.AsyncClient, config: CheckoutConfig) -> "CaptchaGateway":
        enterprise = RecaptchaEnterpriseVerifier(client, config)
        verifiers: dict[str, CaptchaVerifier] = {
            "recaptcha": enterprise,
            "google": enterprise,
            "recaptcha_enterprise": enterprise,
            "recaptcha_v2": RecaptchaSiteVerifier(client, config, provider="recaptcha_v2"),
            "recaptcha_v3": RecaptchaSiteVerifier(client, config, provider="recaptcha_v3"),
        }
        if config.captcha_mock_enabled:
            verifiers["mock"] = MockCaptchaVerifier()
        return cls(verifiers)

    async def verify(
        self,
        token: str,
        declared_type: str | None,
        context: CaptchaContext,
    ) -> bool:
        captcha_type = (declared_type or DEFAULT_CAPTCHA_TYPE).strip().lower()
        verifier = self._verifiers.get(captcha_type)
        if verifier is None:
            logger.warning("Unsupported captcha type", extra={"captcha_type": captcha_type})
            return False

        if not token:
            logger.warning("Captcha token missing", extra={"captcha_type": captcha_type})
            return False

        try:
            result = await verifier.verify(token, context)
        except Exception:
            logger.exception("Captcha verifier raised", extra={"captcha_type": captcha_type})
            return False

        if not result.success:
            logger.info(
                "Captcha verification failed",
                extra={"captcha_type": captcha_type, "error_codes": result.error_codes},
            )
        return result.success


__all__ = (
    "DEFAULT_CAPTCHA_TYPE",
    "MOCK_TOKEN_PREFIX",
    "CaptchaContext",
    "CaptchaGateway",
    "CaptchaVerificationResult",
    "CaptchaVerifier",
    "MockCaptchaVerifier",
    "RecaptchaEnterpriseVerifier",
    "RecaptchaSiteVerifier",
    "passes_threshold",
)
