from dataclasses import dataclass, field

from checkout_guard.api.modules.validation.schema import LocationData, Recommendation
from checkout_guard.api.modules.validation.services.network.user_agent import (
    is_bot_user_agent,
    is_datacenter_isp,
)

VPN_FACTOR = "VPN detected"
PROXY_FACTOR = "Proxy detected"
TOR_FACTOR = "Tor network detected"
HIGH_RISK_COUNTRY_FACTOR = "High-risk country"
DATACENTER_FACTOR = "Datacenter IP"
BOT_USER_AGENT_FACTOR = "Bot user agent detected"

HIGH_RISK_COUNTRIES = frozenset({"CN", "RU", "IR", "KP"})

MAX_RISK_SCORE = 100
BLOCK_SCORE_THRESHOLD = 70
CHALLENGE_SCORE_THRESHOLD = 30


@dataclass(slots=True, frozen=True)
class RiskAssessment:
    risk_score: int
    risk_factors: list[str] = field(default_factory=list)
    recommendation: Recommendation = "allow"
    is_valid: bool = True

    @property
    def is_bot(self) -> bool:
        return BOT_USER_AGENT_FACTOR in self.risk_factors


def decision_for_score(score: int) -> Recommendation:
    if score >= BLOCK_SCORE_THRESHOLD:
        return "block"
    if score >= CHALLENGE_SCORE_THRESHOLD:
        return "challenge"
    return "allow"


def score_risk(location: LocationData, user_agent: str | None) -> RiskAssessment:
    """Additive risk score for an enriched IP and user agent."""
    checks: tuple[tuple[bool, str, int], ...] = (
        (bool(location.is_vpn), VPN_FACTOR, 30),
        (bool(location.is_proxy), PROXY_FACTOR, 25),
        (bool(location.is_tor), TOR_FACTOR, 50),
        (
            (location.country_code or "").upper() in HIGH_RISK_COUNTRIES,
            HIGH_RISK_COUNTRY_FACTOR,
            20,
        ),
        (is_datacenter_isp(location.isp), DATACENTER_FACTOR, 15),
        (is_bot_user_agent(user_agent), BOT_USER_AGENT_FACTOR, 40),
    )

    factors = [name for triggered, name, _ in checks if triggered]
    score = min(sum(weight for triggered, _, weight in checks if triggered), MAX_RISK_SCORE)
    return RiskAssessment(
        risk_score=score,
        risk_factors=factors,
        recommendation=decision_for_score(score),
        is_valid=score < BLOCK_SCORE_THRESHOLD,
    )


__all__ = (
    "BLOCK_SCORE_THRESHOLD",
    "BOT_USER_AGENT_FACTOR",
    "CHALLENGE_SCORE_THRESHOLD",
    "HIGH_RISK_COUNTRIES",
    "RiskAssessment",
    "decision_for_score",
    "score_risk",
)
