from dataclasses import dataclass

from starlette.requests import Request

from checkout_guard.settings import CheckoutConfig

PRIVATE_IP_PREFIXES = ("127.", "10.", "172.", "192.168.")
IPV4_MAPPED_PREFIX = "::ffff:"
DEFAULT_CLIENT_IP = "127.0.0.1"


def strip_ipv4_mapped_prefix(value: str) -> str:
    if value.lower().startswith(IPV4_MAPPED_PREFIX):
        return value[len(IPV4_MAPPED_PREFIX):]
    return value


def is_private_ip(value: str) -> bool:
    return value.startswith(PRIVATE_IP_PREFIXES)


def first_forwarded_ip(header: str | None) -> str | None:
    if not header:
        return None
    candidate = header.split(",", 1)[0].strip()
    return candidate or None


@dataclass(slots=True, frozen=True)
class RequestMeta:
    peer_address: str | None = None
    forwarded_for: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestMeta":
        peer = request.client.host if request.client and request.client.host else None
        return cls(
            peer_address=peer,
            forwarded_for=request.headers.get("x-forwarded-for"),
        )


class ClientIpResolver:
    """Picks the best public client IP for a request.

    X-Forwarded-For is attacker-controlled unless the service sits behind a
    proxy that overwrites it. Disable ``trust_forwarded_ip`` for deployments
    without such a proxy.
    """

    def __init__(self, config: CheckoutConfig):
        self._trust_forwarded_ip = config.trust_forwarded_ip

    def resolve(self, meta: RequestMeta) -> str:
        peer = strip_ipv4_mapped_prefix(meta.peer_address.strip()) if meta.peer_address else None
        if peer and not is_private_ip(peer):
            return peer

        if self._trust_forwarded_ip:
            forwarded = first_forwarded_ip(meta.forwarded_for)
            if forwarded:
                forwarded = strip_ipv4_mapped_prefix(forwarded)
                if not is_private_ip(forwarded):
                    return forwarded

        return peer or DEFAULT_CLIENT_IP


__all__ = (
    "DEFAULT_CLIENT_IP",
    "PRIVATE_IP_PREFIXES",
    "ClientIpResolver",
    "RequestMeta",
    "first_forwarded_ip",
    "is_private_ip",
    "strip_ipv4_mapped_prefix",
)
