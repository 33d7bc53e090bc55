import datetime
from collections.abc import Sequence
from typing import Any

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from checkout_guard.api.modules.validation.models import (
    GeolocationSource,
    IpGeolocation,
    UserValidation,
    ValidationEvent,
    ValidationSetting,
)
from checkout_guard.database.base import utcnow


def created_between(
    since: datetime.datetime | None,
    until: datetime.datetime | None,
) -> list[ColumnElement[bool]]:
    filters: list[ColumnElement[bool]] = []
    if since is not None:
        filters.append(UserValidation.created_at >= since)
    if until is not None:
        filters.append(UserValidation.created_at <= until)
    return filters


class UserValidationGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, validation: UserValidation) -> UserValidation:
        self.session.add(validation)
        await self.session.flush()
        return validation

    async def get_by_id(self, validation_id: str) -> UserValidation | None:
        stmt = select(UserValidation).where(UserValidation.id == validation_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_latest_for_session(self, session_id: str) -> UserValidation | None:
        stmt = (
            select(UserValidation)
            .where(UserValidation.session_id == session_id)
            .order_by(UserValidation.created_at.desc(), UserValidation.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def update_fields(self, validation_id: str, **values: Any) -> bool:
        """Single-statement column merge; untouched columns keep their value."""
        stmt = (
            update(UserValidation)
            .where(UserValidation.id == validation_id)
            .values(**values)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def get_recent(
        self,
        since: datetime.datetime,
        limit: int,
    ) -> Sequence[UserValidation]:
        stmt = (
            select(UserValidation)
            .where(UserValidation.created_at >= since)
            .order_by(UserValidation.created_at.desc(), UserValidation.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def count(self, filters: list[ColumnElement[bool]]) -> dict[str, int]:
        stmt = select(
            func.count().label("total"),
            func.count().filter(UserValidation.validation_result == "passed").label("passed"),
            func.count().filter(UserValidation.validation_result == "failed").label("failed"),
            func.count().filter(UserValidation.is_bot.is_(True)).label("bot_count"),
            func.count()
            .filter(UserValidation.proceed_to_checkout.is_(True))
            .label("proceeded"),
            func.count()
            .filter(UserValidation.completed_order.is_(True))
            .label("completed_orders"),
        ).where(*filters)
        result = await self.session.execute(stmt)
        row = result.one()
        return {key: int(value or 0) for key, value in row._mapping.items()}


class ValidationEventGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        validation_id: str,
        session_id: str,
        kind: str,
        payload: dict[str, Any],
    ) -> ValidationEvent:
        event = ValidationEvent(
            validation_id=validation_id,
            session_id=session_id,
            kind=kind,
            payload=payload,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def get_for_validation(self, validation_id: str) -> Sequence[ValidationEvent]:
        stmt = (
            select(ValidationEvent)
            .where(ValidationEvent.validation_id == validation_id)
            .order_by(ValidationEvent.id.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class IpGeolocationGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_ip(self, ip_address: str) -> IpGeolocation | None:
        stmt = select(IpGeolocation).where(IpGeolocation.ip_address == ip_address)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_fresh(
        self,
        ip_address: str,
        updated_since: datetime.datetime,
        source: GeolocationSource = "provider",
    ) -> IpGeolocation | None:
        stmt = select(IpGeolocation).where(
            IpGeolocation.ip_address == ip_address,
            IpGeolocation.source == source,
            IpGeolocation.last_updated >= updated_since,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, ip_address: str, **values: Any) -> IpGeolocation:
        existing = await self.get_by_ip(ip_address)
        if existing is None:
            row = IpGeolocation(ip_address=ip_address, last_updated=utcnow(), **values)
            self.session.add(row)
            await self.session.flush()
            return row

        for key, value in values.items():
            setattr(existing, key, value)
        existing.last_updated = utcnow()
        await self.session.flush()
        return existing

    async def delete_updated_before(self, cutoff: datetime.datetime) -> int:
        stmt = (
            delete(IpGeolocation)
            .where(IpGeolocation.last_updated < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount or 0


class ValidationSettingGateway:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_key(self, key: str) -> ValidationSetting | None:
        stmt = select(ValidationSetting).where(ValidationSetting.setting_key == key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_all(self) -> Sequence[ValidationSetting]:
        stmt = select(ValidationSetting).order_by(ValidationSetting.setting_key.asc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def upsert(
        self,
        key: str,
        value: Any,
        description: str | None = None,
    ) -> ValidationSetting:
        existing = await self.get_by_key(key)
        if existing is None:
            setting = ValidationSetting(
                setting_key=key,
                setting_value=value,
                description=description,
                updated_at=utcnow(),
            )
            self.session.add(setting)
            await self.session.flush()
            return setting

        existing.setting_value = value
        if description is not None:
            existing.description = description
        existing.updated_at = utcnow()
        await self.session.flush()
        return existing
