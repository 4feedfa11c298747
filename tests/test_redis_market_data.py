"""
Tests for the Redis market data adapter.

The redis client is a MagicMock; payloads mirror what the upstream
pivot, OI and candle publishers write.
"""

import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import redis

from adaptive_exit.domain.exits.confluence import ConfluenceScorer
from adaptive_exit.domain.exits.coordinator import PositionExitCoordinator
from adaptive_exit.domain.exits.entities import OiInterpretation, SourceTag
from adaptive_exit.domain.exits.errors import DataUnavailableError
from adaptive_exit.domain.exits.level_collector import LevelCollector
from adaptive_exit.infrastructure.exits.redis_market_data import RedisMarketDataAdapter

NOW_MS = 1_700_000_000_000


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def adapter(client) -> RedisMarketDataAdapter:
    return RedisMarketDataAdapter(client=client, oi_max_age_seconds=180, clock=lambda: NOW_MS)


class TestPivotLevels:
    """Tests for reading pivot:mtf:{underlying}."""

    def test_flattens_timeframes(self, adapter, client) -> None:
        client.get.return_value = json.dumps({
            "dailyPivot": {"pivot": 3070.5, "r1": 3085, "s1": 3040, "r4": 0},
            "prevDailyPivot": {"pivot": 3060},
            "weeklyPivot": ["com.example.PivotLevels", {"r1": 3095}],
            "monthlyPivot": None,
        })
        levels = adapter.get_pivot_levels("NIFTY")

        client.get.assert_called_once_with("pivot:mtf:NIFTY")
        by_name = {level.name: level for level in levels}
        assert set(by_name) == {"dailyPIVOT", "dailyR1", "dailyS1", "prevDailyPIVOT", "weeklyR1"}
        assert by_name["dailyPIVOT"].price == Decimal("3070.5")
        assert by_name["prevDailyPIVOT"].timeframe is SourceTag.PIVOT_DAILY
        assert by_name["weeklyR1"].timeframe is SourceTag.PIVOT_WEEKLY

    def test_variant_sub_levels(self, adapter, client) -> None:
        client.get.return_value = json.dumps({
            "monthlyPivot": {"pivot": 3000, "camarilla": {"h3": 3120, "l3": 2950}},
        })
        names = {level.name for level in adapter.get_pivot_levels("NIFTY")}
        assert names == {"monthlyPIVOT", "monthlyCamarillaH3", "monthlyCamarillaL3"}

    def test_missing_key(self, adapter, client) -> None:
        client.get.return_value = None
        with pytest.raises(DataUnavailableError) as exc_info:
            adapter.get_pivot_levels("NIFTY")
        assert exc_info.value.reason == "missing"

    def test_no_positive_levels(self, adapter, client) -> None:
        client.get.return_value = json.dumps({"dailyPivot": {"r1": 0, "s1": -5}})
        with pytest.raises(DataUnavailableError):
            adapter.get_pivot_levels("NIFTY")

    def test_unparseable_payload(self, adapter, client) -> None:
        client.get.return_value = "{not json"
        with pytest.raises(DataUnavailableError) as exc_info:
            adapter.get_pivot_levels("NIFTY")
        assert exc_info.value.reason == "unparseable"

    def test_redis_error_is_unavailable(self, adapter, client) -> None:
        client.get.side_effect = redis.ConnectionError("refused")
        with pytest.raises(DataUnavailableError):
            adapter.get_pivot_levels("NIFTY")


class TestLatestOiReading:
    """Tests for reading oi:{scrip}:latest."""

    def test_parses_type_wrapped_interpretation(self, adapter, client) -> None:
        client.get.return_value = json.dumps({
            "interpretation": ["com.example.OIInterpretation", "LONG_UNWINDING"],
            "interpretationConfidence": 0.72,
            "oiChangePercent": -3.4,
            "oiChange": -1200,
            "timestamp": NOW_MS - 60_000,
        })
        oi = adapter.get_latest_reading("OPT1")

        client.get.assert_called_once_with("oi:OPT1:latest")
        assert oi.interpretation is OiInterpretation.LONG_UNWINDING
        assert oi.confidence == pytest.approx(0.72)
        assert oi.change_percent == pytest.approx(-3.4)
        assert oi.timestamp_ms == NOW_MS - 60_000

    def test_missing_timestamp_stamped_now(self, adapter, client) -> None:
        client.get.return_value = json.dumps({"interpretation": "neutral"})
        oi = adapter.get_latest_reading("OPT1")
        assert oi.interpretation is OiInterpretation.NEUTRAL
        assert oi.timestamp_ms == NOW_MS
        assert oi.confidence == 0.0

    def test_stale_snapshot(self, adapter, client) -> None:
        client.get.return_value = json.dumps({
            "interpretation": "SHORT_BUILDUP",
            "timestamp": NOW_MS - 181_000,
        })
        with pytest.raises(DataUnavailableError) as exc_info:
            adapter.get_latest_reading("OPT1")
        assert exc_info.value.reason == "stale"

    @pytest.mark.parametrize("payload", [{}, {"interpretation": None}, {"interpretation": "SIDEWAYS"}])
    def test_unusable_interpretation(self, adapter, client, payload) -> None:
        client.get.return_value = json.dumps(payload)
        with pytest.raises(DataUnavailableError):
            adapter.get_latest_reading("OPT1")


class TestRecentCandles:
    """Tests for reading tick:{scrip}:1m:history."""

    def test_returns_oldest_first(self, adapter, client) -> None:
        client.lrange.return_value = [
            json.dumps({"timestamp": 3, "open": 24, "high": 25, "low": 23.5, "close": 24.5, "volume": 10}),
            json.dumps({"timestamp": 2, "open": 23, "high": 24, "low": 22.5, "close": 23.5}),
            json.dumps({"windowStartMillis": 1, "high": 23, "low": 22}),
        ]
        candles = adapter.get_recent_candles("OPT1", 60)

        client.lrange.assert_called_once_with("tick:OPT1:1m:history", 0, 59)
        assert [c.timestamp_ms for c in candles] == [1, 2, 3]
        assert candles[-1].high == Decimal("25")
        assert candles[-1].volume == 10

    def test_bad_entries_dropped(self, adapter, client) -> None:
        client.lrange.return_value = [
            "garbage",
            json.dumps({"timestamp": 2, "high": 0, "low": 22}),
            json.dumps({"timestamp": 1, "high": 23, "low": 22}),
        ]
        candles = adapter.get_recent_candles("OPT1", 60)
        assert [c.timestamp_ms for c in candles] == [1]

    def test_empty_history(self, adapter, client) -> None:
        client.lrange.return_value = []
        assert adapter.get_recent_candles("OPT1", 60) == []

    def test_redis_error_is_unavailable(self, adapter, client) -> None:
        client.lrange.side_effect = redis.TimeoutError("slow")
        with pytest.raises(DataUnavailableError):
            adapter.get_recent_candles("OPT1", 60)

    def test_non_finite_numbers_fall_back_to_defaults(self, adapter, client) -> None:
        """NaN and Infinity literals are accepted by json and must not leak out."""
        client.lrange.return_value = [
            '{"timestamp": Infinity, "high": 24, "low": 23, "volume": -Infinity}',
            '{"timestamp": 1, "high": 23, "low": 22, "volume": NaN}',
        ]
        candles = adapter.get_recent_candles("OPT1", 60)
        assert [c.timestamp_ms for c in candles] == [1, 0]
        assert [c.volume for c in candles] == [0, 0]

    def test_non_finite_high_drops_entry(self, adapter, client) -> None:
        client.lrange.return_value = ['{"timestamp": 1, "high": NaN, "low": 22}']
        assert adapter.get_recent_candles("OPT1", 60) == []


class TestOpenPositionOverRedis:
    """The adapter feeding a real coordinator end to end."""

    def test_malformed_candles_do_not_fail_open(self, adapter, client, worked_request) -> None:
        client.get.return_value = None
        client.lrange.return_value = ['{"high": 10, "low": 9, "volume": NaN}'] * 40
        coordinator = PositionExitCoordinator(
            level_collector=LevelCollector(pivot_port=adapter, candle_port=adapter),
            scorer=ConfluenceScorer(),
            clock=lambda: NOW_MS,
        )

        snapshot = coordinator.open_position(worked_request)

        assert snapshot.remaining_quantity == 500
        assert snapshot.target_ladder.stop_loss == worked_request.static_targets.stop_loss
