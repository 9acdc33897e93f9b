"""Unit tests for models.resolution."""

import pytest

from envoi.models.address import ZERO_ADDRESS
from envoi.models.constants import BatchState, Direction
from envoi.models.resolution import BatchResolution, Resolution


def _result(cached: bool, age: int = 0, ttl: int = 3600) -> Resolution:
    return Resolution(
        key="alice.voi",
        direction=Direction.FORWARD,
        value=ZERO_ADDRESS,
        cached=cached,
        age_seconds=age,
        ttl=ttl,
    )


class TestResolution:
    def test_forward_dict(self) -> None:
        result = Resolution("Alice.voi", Direction.FORWARD, ZERO_ADDRESS, cached=True)
        assert result.to_dict() == {"name": "Alice.voi", "address": ZERO_ADDRESS, "cached": True}

    def test_reverse_dict(self) -> None:
        result = Resolution(ZERO_ADDRESS, Direction.REVERSE, None, cached=False)
        assert result.to_dict() == {"address": ZERO_ADDRESS, "name": None, "cached": False}

    def test_found(self) -> None:
        assert _result(cached=False).found
        assert not Resolution("ghost.voi", Direction.FORWARD, None, cached=False).found

    def test_ttl_remaining(self) -> None:
        assert _result(cached=True, age=600).ttl_remaining == 3000

    def test_ttl_remaining_never_negative(self) -> None:
        assert _result(cached=True, age=5000).ttl_remaining == 0

    def test_direction_type_checked(self) -> None:
        with pytest.raises(TypeError, match="direction must be a Direction"):
            Resolution("alice.voi", "forward", None, cached=False)  # type: ignore[arg-type]


class TestClassify:
    def test_all_cached_is_hit(self) -> None:
        results = (_result(True), _result(True))
        assert BatchResolution.classify(results, ignore_cache=False) is BatchState.HIT

    def test_none_cached_is_miss(self) -> None:
        results = (_result(False), _result(False))
        assert BatchResolution.classify(results, ignore_cache=False) is BatchState.MISS

    def test_some_cached_is_mixed(self) -> None:
        results = (_result(True), _result(False))
        assert BatchResolution.classify(results, ignore_cache=False) is BatchState.MIXED

    @pytest.mark.parametrize("cached", [True, False])
    def test_ignore_cache_is_bypass(self, cached: bool) -> None:
        results = (_result(cached),)
        assert BatchResolution.classify(results, ignore_cache=True) is BatchState.BYPASS

    def test_empty_batch_is_hit(self) -> None:
        assert BatchResolution.classify((), ignore_cache=False) is BatchState.HIT

    def test_empty_bypass(self) -> None:
        assert BatchResolution.classify((), ignore_cache=True) is BatchState.BYPASS


class TestMaxAge:
    def test_min_remaining_ttl(self) -> None:
        batch = BatchResolution(
            results=(_result(True, age=100), _result(True, age=1000), _result(False)),
            state=BatchState.MIXED,
        )
        assert batch.max_age == 2600

    def test_bypass_is_zero(self) -> None:
        batch = BatchResolution(results=(_result(False),), state=BatchState.BYPASS)
        assert batch.max_age == 0

    def test_empty_is_zero(self) -> None:
        assert BatchResolution(results=(), state=BatchState.HIT).max_age == 0
