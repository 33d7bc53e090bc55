from dataclasses import dataclass
from datetime import datetime

from checkout_guard.api.modules.validation.gateway import (
    UserValidationGateway,
    created_between,
)


@dataclass(slots=True, frozen=True)
class ValidationCounts:
    total: int = 0
    passed: int = 0
    failed: int = 0
    bot_count: int = 0
    proceeded: int = 0
    completed_orders: int = 0


def conversion_rate(completed: int, total: int) -> str:
    if total <= 0:
        return "0"
    return f"{completed / total * 100:.2f}"


class StatsAggregator:
    def __init__(self, validations: UserValidationGateway):
        self._validations = validations

    async def aggregate(
        self,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> ValidationCounts:
        counts = await self._validations.count(created_between(since, until))
        return ValidationCounts(**counts)


__all__ = ("StatsAggregator", "ValidationCounts", "conversion_rate")
