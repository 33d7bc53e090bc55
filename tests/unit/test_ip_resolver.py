"""
Tests for client IP resolution.

X-Forwarded-For is only trustworthy behind a proxy that overwrites any
client-supplied value; these tests assume that deployment precondition
unless ``trust_forwarded_ip`` is switched off.
"""

import pytest

from checkout_guard.api.modules.validation.services.network.common import (
    DEFAULT_CLIENT_IP,
    ClientIpResolver,
    RequestMeta,
    is_private_ip,
    strip_ipv4_mapped_prefix,
)
from checkout_guard.settings import CheckoutConfig


@pytest.fixture
def resolver() -> ClientIpResolver:
    return ClientIpResolver(CheckoutConfig())


class TestClientIpResolver:
    def test_public_peer_address_wins(self, resolver: ClientIpResolver):
        meta = RequestMeta(peer_address="203.0.113.7", forwarded_for="198.51.100.1")
        assert resolver.resolve(meta) == "203.0.113.7"

    def test_strips_ipv4_mapped_prefix(self, resolver: ClientIpResolver):
        meta = RequestMeta(peer_address="::ffff:203.0.113.7")
        assert resolver.resolve(meta) == "203.0.113.7"

    @pytest.mark.parametrize(
        "peer",
        ["127.0.0.1", "10.1.2.3", "172.16.0.4", "192.168.1.5", "::ffff:10.0.0.1"],
    )
    def test_private_peer_falls_back_to_forwarded_for(
        self, resolver: ClientIpResolver, peer: str
    ):
        meta = RequestMeta(peer_address=peer, forwarded_for=" 198.51.100.9 , 10.0.0.1")
        assert resolver.resolve(meta) == "198.51.100.9"

    def test_private_forwarded_for_is_rejected(self, resolver: ClientIpResolver):
        meta = RequestMeta(peer_address="10.0.0.2", forwarded_for="192.168.0.10")
        assert resolver.resolve(meta) == "10.0.0.2"

    def test_defaults_to_loopback_when_nothing_resolves(self, resolver: ClientIpResolver):
        assert resolver.resolve(RequestMeta()) == DEFAULT_CLIENT_IP

    def test_forwarded_for_ignored_when_untrusted(self):
        resolver = ClientIpResolver(CheckoutConfig(trust_forwarded_ip=False))
        meta = RequestMeta(peer_address="10.0.0.2", forwarded_for="198.51.100.9")
        assert resolver.resolve(meta) == "10.0.0.2"

    def test_spoofed_forwarded_for_is_taken_at_face_value(self, resolver: ClientIpResolver):
        """Without a trusted proxy in front, a client can pick its own IP."""
        meta = RequestMeta(peer_address="127.0.0.1", forwarded_for="5.5.5.5")
        assert resolver.resolve(meta) == "5.5.5.5"


class TestIpHelpers:
    def test_is_private_ip(self):
        assert is_private_ip("192.168.1.1")
        assert is_private_ip("127.0.0.1")
        assert not is_private_ip("8.8.8.8")

    def test_strip_prefix_leaves_plain_addresses(self):
        assert strip_ipv4_mapped_prefix("8.8.8.8") == "8.8.8.8"
        assert strip_ipv4_mapped_prefix("::FFFF:8.8.8.8") == "8.8.8.8"
