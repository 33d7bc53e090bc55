import datetime
import uuid
from typing import Any, Literal

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from checkout_guard.database.base import Base, DateTimeMixin, utcnow


GeolocationSource = Literal["offline", "provider"]


def _new_id() -> str:
    return str(uuid.uuid4())


class UserValidation(Base, DateTimeMixin):
    """One row per risk evaluation; later stages update it in place."""

    __tablename__ = "user_validations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    session_id: Mapped[str] = mapped_column(String(256), index=True)
    ip_address: Mapped[str] = mapped_column(String(64), index=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    cart_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cart_items: Mapped[int | None] = mapped_column(Integer, nullable=True)
    validation_type: Mapped[str] = mapped_column(String(16), index=True)
    validation_result: Mapped[str] = mapped_column(String(16), index=True)
    risk_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    captcha_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_bot: Mapped[bool] = mapped_column(Boolean, default=False)
    proceed_to_checkout: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_order: Mapped[bool] = mapped_column(Boolean, default=False)


class ValidationEvent(Base, DateTimeMixin):
    """Append-only audit trail of the stages applied to a validation."""

    __tablename__ = "validation_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    validation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_validations.id", ondelete="CASCADE"), index=True
    )
    session_id: Mapped[str] = mapped_column(String(256), index=True)
    kind: Mapped[str] = mapped_column(String(32))
    payload: Mapped[dict] = mapped_column(JSON, default=dict)


class IpGeolocation(Base, DateTimeMixin):
    __tablename__ = "ip_geolocations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ip_address: Mapped[str] = mapped_column(String(64), unique=True)
    country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    country_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    region: Mapped[str | None] = mapped_column(String(128), nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    latitude: Mapped[str | None] = mapped_column(String(32), nullable=True)
    longitude: Mapped[str | None] = mapped_column(String(32), nullable=True)
    timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    isp: Mapped[str | None] = mapped_column(String(256), nullable=True)
    is_vpn: Mapped[bool] = mapped_column(Boolean, default=False)
    is_proxy: Mapped[bool] = mapped_column(Boolean, default=False)
    is_tor: Mapped[bool] = mapped_column(Boolean, default=False)
    threat_level: Mapped[str | None] = mapped_column(String(16), nullable=True)
    # Offline rows are demo data and must never stand in for provider answers.
    source: Mapped[str] = mapped_column(
        String(16), default="provider", server_default="provider"
    )
    last_updated: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )


class ValidationSetting(Base, DateTimeMixin):
    __tablename__ = "validation_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    setting_key: Mapped[str] = mapped_column(String(128), unique=True)
    setting_value: Mapped[Any] = mapped_column(JSON, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
