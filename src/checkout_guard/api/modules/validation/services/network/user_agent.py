BOT_UA_MARKERS = (
    "bot",
    "crawler",
    "spider",
    "scraper",
    "curl",
    "wget",
    "python",
    "php",
    "selenium",
    "phantomjs",
    "headless",
)
DATACENTER_ISP_MARKERS = (
    "amazon",
    "google",
    "microsoft",
    "digitalocean",
    "linode",
    "vultr",
    "hetzner",
)


def contains_any(value: str, markers: tuple[str, ...]) -> bool:
    return any(marker in value for marker in markers)


def is_bot_user_agent(user_agent: str | None) -> bool:
    if not user_agent:
        return False
    return contains_any(user_agent.lower(), BOT_UA_MARKERS)


def is_datacenter_isp(isp: str | None) -> bool:
    if not isp:
        return False
    return contains_any(isp.lower(), DATACENTER_ISP_MARKERS)


__all__ = (
    "BOT_UA_MARKERS",
    "DATACENTER_ISP_MARKERS",
    "contains_any",
    "is_bot_user_agent",
    "is_datacenter_isp",
)
