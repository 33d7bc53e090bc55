from enum import StrEnum

from checkout_guard.api.modules.validation.models import UserValidation
from checkout_guard.api.modules.validation.services.core.scoring import (
    decision_for_score,
)


class ValidationState(StrEnum):
    INITIATED = "initiated"
    CHALLENGE_PENDING = "challenge_pending"
    CHALLENGE_RESOLVED = "challenge_resolved"
    PROCEEDED = "proceeded"


class EventKind(StrEnum):
    IP_CHECK = "ip_check"
    CAPTCHA_OUTCOME = "captcha_outcome"
    PROCEEDED = "proceeded"


def validation_state(record: UserValidation) -> ValidationState:
    if record.proceed_to_checkout:
        return ValidationState.PROCEEDED
    if record.validation_type == "captcha":
        return ValidationState.CHALLENGE_RESOLVED
    if record.risk_score is not None and decision_for_score(record.risk_score) == "challenge":
        return ValidationState.CHALLENGE_PENDING
    return ValidationState.INITIATED


__all__ = ("EventKind", "ValidationState", "validation_state")
