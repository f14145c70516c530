"""
Unit tests for the bounded cache and analysis result types.

Run: pytest tests/unit/test_cache_results.py -v
"""

import pytest

from cadence.cache import BoundedCache
from cadence.exceptions import InvalidInputError
from cadence.results import Computed, NotEnoughData, is_computed, value_or


class TestBoundedCache:
    def test_hits_and_misses(self):
        cache = BoundedCache(max_entries=4)
        calls = []

        def compute():
            calls.append(1)
            return 42

        assert cache.get_or_compute("a", compute) == 42
        assert cache.get_or_compute("a", compute) == 42
        assert len(calls) == 1
        assert cache.hits == 1
        assert cache.misses == 1

    def test_least_recently_used_evicted(self):
        cache = BoundedCache(max_entries=2)
        cache.get_or_compute("a", lambda: 1)
        cache.get_or_compute("b", lambda: 2)
        cache.get_or_compute("a", lambda: 1)  # a is now most recent
        cache.get_or_compute("c", lambda: 3)

        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_clear(self):
        cache = BoundedCache(max_entries=2)
        cache.get_or_compute("a", lambda: 1)
        cache.clear()

        assert len(cache) == 0
        assert cache.hits == 0
        assert cache.misses == 0

    @pytest.mark.parametrize("size", [0, -1])
    def test_invalid_size(self, size):
        with pytest.raises(InvalidInputError):
            BoundedCache(max_entries=size)


class TestResults:
    def test_not_enough_data_is_falsy(self):
        result = NotEnoughData("need more", required=5, available=2)
        assert not result
        assert not is_computed(result)
        assert value_or(result, -1) == -1

    def test_computed(self):
        result = Computed(0.0)
        assert result
        assert is_computed(result)
        assert value_or(result, -1) == 0.0
