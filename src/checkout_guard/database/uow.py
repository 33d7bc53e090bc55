from sqlalchemy.ext.asyncio import AsyncSession

from checkout_guard.api.modules.validation.gateway import (
    IpGeolocationGateway,
    UserValidationGateway,
    ValidationEventGateway,
    ValidationSettingGateway,
)


class UnitOfWork:
    """Request-scoped session plus the gateways that share it."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.validations = UserValidationGateway(session)
        self.events = ValidationEventGateway(session)
        self.geolocations = IpGeolocationGateway(session)
        self.settings = ValidationSettingGateway(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
