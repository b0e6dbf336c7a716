"""Unit tests for cache module."""

from dnsimple.cache import CacheHit, CacheMiss, RecordCache
from dnsimple.records import ARecord

T0 = 1_700_000_000.0


def a_record(ip="93.184.216.34", domain="example.com.", ttl=300, creation_time=T0):
    return ARecord(ttl=ttl, creation_time=creation_time, ip=ip, domain=domain)


def describe_record_cache():
    """RecordCache unit tests."""

    def it_initializes_empty_cache():
        """Test RecordCache starts empty."""
        cache = RecordCache("A")

        assert len(cache) == 0
        assert cache.snapshot() == {}

    def it_returns_appended_record_before_expiry():
        """Test append then prune_and_get returns exactly the record."""
        cache = RecordCache("A")
        record = a_record()

        cache.append("example.com.", record)
        result = cache.prune_and_get("example.com.", T0 + 1)

        assert isinstance(result, CacheHit)
        assert result.records == [record]

    def it_returns_miss_for_unknown_key():
        """Test lookup of a missing key is a miss."""
        cache = RecordCache("A")

        assert isinstance(cache.prune_and_get("nonexistent.com.", T0), CacheMiss)
        assert "nonexistent.com." not in cache

    def it_keeps_duplicate_records():
        """Test appending the same record twice stores two entries."""
        cache = RecordCache("A")
        record = a_record()

        cache.append("example.com.", record)
        cache.append("example.com.", record)

        assert cache.get("example.com.") == [record, record]

    def it_appends_in_order():
        """Test records are kept in insertion order."""
        cache = RecordCache("A")
        first = a_record(ip="1.1.1.1")
        second = a_record(ip="2.2.2.2")

        cache.append("example.com.", first)
        cache.append("example.com.", second)

        result = cache.prune_and_get("example.com.", T0)
        assert [str(r.ip) for r in result.records] == ["1.1.1.1", "2.2.2.2"]

    def it_prunes_expired_records_and_writes_back():
        """Test expired records are dropped from the stored list."""
        cache = RecordCache("A")
        short = a_record(ip="1.1.1.1", ttl=10)
        long = a_record(ip="2.2.2.2", ttl=300)
        cache.append("example.com.", short)
        cache.append("example.com.", long)

        result = cache.prune_and_get("example.com.", T0 + 10)

        assert isinstance(result, CacheHit)
        assert result.records == [long]
        assert cache.get("example.com.") == [long]

    def it_reports_miss_when_all_records_expired():
        """Test a key whose records all expired is a miss and pruned to empty."""
        cache = RecordCache("A")
        cache.append("example.com.", a_record(ttl=300))

        result = cache.prune_and_get("example.com.", T0 + 300)

        assert isinstance(result, CacheMiss)
        assert cache.get("example.com.") == []

    def it_does_not_prune_other_keys():
        """Test pruning touches only the looked-up key."""
        cache = RecordCache("A")
        cache.append("a.example.", a_record(domain="a.example.", ttl=1))
        cache.append("b.example.", a_record(domain="b.example.", ttl=1))

        cache.prune_and_get("a.example.", T0 + 5)

        assert cache.get("a.example.") == []
        assert len(cache.get("b.example.")) == 1

    def it_returns_copy_of_records():
        """Test mutating a hit result does not change the cache."""
        cache = RecordCache("A")
        cache.append("example.com.", a_record())

        result = cache.prune_and_get("example.com.", T0)
        result.records.clear()

        assert len(cache.get("example.com.")) == 1

    def it_aliases_canonical_records():
        """Test alias_to makes canonical records retrievable under the alias."""
        cache = RecordCache("A")
        record = a_record()
        cache.append("example.com.", record)

        assert cache.alias_to("alias.example.com.", "example.com.") is True

        result = cache.prune_and_get("alias.example.com.", T0)
        assert isinstance(result, CacheHit)
        assert result.records == [record]

    def it_aliases_as_snapshot_copy():
        """Test later appends to either key do not affect the other."""
        cache = RecordCache("A")
        cache.append("example.com.", a_record(ip="1.1.1.1"))
        cache.alias_to("alias.example.com.", "example.com.")

        cache.append("example.com.", a_record(ip="2.2.2.2"))
        cache.append("alias.example.com.", a_record(ip="3.3.3.3"))

        assert [str(r.ip) for r in cache.get("example.com.")] == ["1.1.1.1", "2.2.2.2"]
        assert [str(r.ip) for r in cache.get("alias.example.com.")] == ["1.1.1.1", "3.3.3.3"]

    def it_skips_alias_for_uncached_target():
        """Test alias_to does nothing when the canonical name is not cached."""
        cache = RecordCache("A")

        assert cache.alias_to("alias.example.com.", "example.com.") is False
        assert "alias.example.com." not in cache

    def it_copies_initial_entries():
        """Test entries passed to the constructor are copied."""
        entries = {"example.com.": [a_record()]}
        cache = RecordCache("A", entries)

        entries["example.com."].append(a_record(ip="5.6.7.8"))

        assert len(cache.get("example.com.")) == 1

    def it_tracks_statistics():
        """Test cache tracks hit/miss statistics."""
        cache = RecordCache("A")
        cache.append("example.com.", a_record())

        cache.prune_and_get("example.com.", T0)  # hit
        cache.prune_and_get("example.com.", T0)  # hit
        cache.prune_and_get("nonexistent.com.", T0)  # miss
        cache.prune_and_get("example.com.", T0 + 301)  # miss (expired)

        stats = cache.get_stats()
        assert stats["hits"] == 2
        assert stats["misses"] == 2
        assert stats["hit_rate"] == 50.0
        assert stats["keys"] == 1
        assert stats["records"] == 0

    def it_reports_zero_hit_rate_without_lookups():
        """Test hit rate is 0.0 before any lookup."""
        assert RecordCache("A").get_stats()["hit_rate"] == 0.0
