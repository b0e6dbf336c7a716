"""pytest configuration and fixtures for dnsimple tests."""

import pytest
from dnslib import RR, DNSRecord

from dnsimple.cache import RecordCache
from dnsimple.config import Config
from dnsimple.resolver import ResolutionEngine

T0 = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Clock starting at a fixed timestamp."""
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    """Config bound to loopback with cache files under tmp_path."""
    return Config(
        upstream_dns="127.0.0.1",
        upstream_port=5353,
        upstream_timeout=0.5,
        bind_address="127.0.0.1",
        port=0,
        a_cache_path=str(tmp_path / "a_cache.json"),
        ns_cache_path=str(tmp_path / "ns_cache.json"),
        log_level="DEBUG",
    )


@pytest.fixture
def a_cache():
    """Empty A record cache."""
    return RecordCache("A")


@pytest.fixture
def ns_cache():
    """Empty NS record cache."""
    return RecordCache("NS")


@pytest.fixture
def engine(a_cache, ns_cache, clock):
    """Resolution engine over empty caches and a fake clock."""
    return ResolutionEngine(
        a_cache,
        ns_cache,
        upstream_dns="127.0.0.1",
        upstream_port=5353,
        upstream_timeout=0.5,
        clock=clock,
    )


@pytest.fixture
def make_query():
    """Factory for DNS queries with a fixed id."""

    def _make_query(name: str, qtype: str = "A", query_id: int = 4242) -> DNSRecord:
        query = DNSRecord.question(name, qtype)
        query.header.id = query_id
        return query

    return _make_query


@pytest.fixture
def make_reply():
    """Factory for upstream replies built from zone-file lines."""

    def _make_reply(
        query: DNSRecord,
        answers: list[str] | None = None,
        authority: list[str] | None = None,
        additional: list[str] | None = None,
    ) -> DNSRecord:
        reply = query.reply()
        for line in answers or []:
            reply.add_answer(*RR.fromZone(line))
        for line in authority or []:
            reply.add_auth(*RR.fromZone(line))
        for line in additional or []:
            reply.add_ar(*RR.fromZone(line))
        return reply

    return _make_reply


@pytest.fixture
def sample_config_data(tmp_path):
    """Sample configuration data for testing."""
    return {
        "upstream_dns": "1.1.1.1",
        "upstream_port": 53,
        "upstream_timeout": 2.5,
        "bind_address": "127.0.0.1",
        "port": 5300,
        "a_cache_path": str(tmp_path / "a_cache.json"),
        "ns_cache_path": str(tmp_path / "ns_cache.json"),
        "log_level": "debug",
    }
