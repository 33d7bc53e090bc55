from checkout_guard.api.modules.validation.services.core.scoring import (
    BOT_USER_AGENT_FACTOR,
    RiskAssessment,
    decision_for_score,
    score_risk,
)
from checkout_guard.api.modules.validation.services.core.state import (
    EventKind,
    ValidationState,
    validation_state,
)
from checkout_guard.api.modules.validation.services.core.stats import (
    StatsAggregator,
    ValidationCounts,
    conversion_rate,
)

__all__ = (
    "BOT_USER_AGENT_FACTOR",
    "EventKind",
    "RiskAssessment",
    "StatsAggregator",
    "ValidationCounts",
    "ValidationState",
    "conversion_rate",
    "decision_for_score",
    "score_risk",
    "validation_state",
)
