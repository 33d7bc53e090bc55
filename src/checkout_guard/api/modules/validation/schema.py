from datetime import datetime
from typing import Any, Literal

from pydantic import ConfigDict, Field

from checkout_guard.api.common.schema import CamelModel

Recommendation = Literal["allow", "challenge", "block"]
ThreatLevel = Literal["low", "medium", "high"]
ValidationType = Literal["ip_check", "captcha"]
ValidationResult = Literal["passed", "failed"]


class LocationData(CamelModel):
    """Enrichment result for a single IP; snapshotted onto validation records."""

    ip: str
    country: str | None = None
    country_code: str | None = None
    region: str | None = None
    city: str | None = None
    zip_code: str | None = None
    latitude: str | None = None
    longitude: str | None = None
    timezone: str | None = None
    isp: str | None = None
    is_vpn: bool | None = None
    is_proxy: bool | None = None
    is_tor: bool | None = None
    threat_level: ThreatLevel = "low"

    def snapshot(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class CaptchaData(CamelModel):
    type: str
    verified_at: datetime
    verified: bool


class ValidateUserRequest(CamelModel):
    session_id: str = Field(..., min_length=1, max_length=256)
    cart_value: int | None = Field(default=None, ge=0)
    cart_items: int | None = Field(default=None, ge=0)
    user_agent: str | None = Field(default=None, max_length=2048)

    model_config = ConfigDict(extra="ignore")


class LocationSummary(CamelModel):
    country: str | None = None
    city: str | None = None


class ValidateUserResponse(CamelModel):
    validation_id: str
    is_valid: bool
    risk_score: int = Field(..., ge=0, le=100)
    recommendation: Recommendation
    risk_factors: list[str]
    requires_captcha: bool
    blocked: bool
    location: LocationSummary


class CaptchaRequest(CamelModel):
    validation_id: str = Field(..., min_length=1, max_length=64)
    captcha_response: str = Field(..., min_length=1, max_length=8192)
    captcha_type: str | None = Field(default=None, max_length=32)

    model_config = ConfigDict(extra="ignore")


class CaptchaResponse(CamelModel):
    success: bool
    message: str
    validation_id: str


class ProceedCheckoutRequest(CamelModel):
    validation_id: str | None = Field(default=None, max_length=64)
    session_id: str | None = Field(default=None, max_length=256)

    model_config = ConfigDict(extra="ignore")


class ProceedCheckoutResponse(CamelModel):
    success: bool = True
    # False when neither the validation id nor the session matched a record.
    matched: bool


class ValidationCountsResponse(CamelModel):
    total: int
    passed: int
    failed: int
    bot_count: int


class ValidationStatsResponse(ValidationCountsResponse):
    conversion_rate: str
    recent_validations: int
    proceed_to_checkout: int
    recent: ValidationCountsResponse


class ValidationRecordResponse(CamelModel):
    id: str
    session_id: str
    ip_address: str
    user_agent: str | None = None
    cart_value: int | None = None
    cart_items: int | None = None
    validation_type: ValidationType
    validation_result: ValidationResult
    risk_score: int | None = None
    location_data: dict[str, Any] | None = None
    captcha_data: dict[str, Any] | None = None
    is_bot: bool
    proceed_to_checkout: bool
    completed_order: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class WidgetConfigResponse(CamelModel):
    site_key: str | None
    api_base_url: str


class ValidationSettingUpsertRequest(CamelModel):
    setting_value: Any
    description: str | None = Field(default=None, max_length=1024)


class ValidationSettingResponse(CamelModel):
    setting_key: str
    setting_value: Any
    description: str | None = None
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GeolocationPurgeResponse(CamelModel):
    deleted: int
