"""
Adapter: Redis market data.

Implements PivotSnapshotPort, OiSnapshotPort and CandleHistoryPort.
Responsible for reading the JSON snapshots other services publish to Redis:

    pivot:mtf:{underlying}        multi-timeframe pivot snapshot
    oi:{scripCode}:latest         latest OI interpretation
    tick:{scripCode}:1m:history   list of 1-minute candles, newest first

Values may be type-wrapped by the publisher (``["java.Class", {...}]``).
Every read failure surfaces as DataUnavailableError.
"""

import json
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

import redis

from adaptive_exit.domain.exits.coordinator import now_ms
from adaptive_exit.domain.exits.entities import (
    Candle,
    OiInterpretation,
    OiReading,
    PivotLevel,
    SourceTag,
)
from adaptive_exit.domain.exits.errors import DataUnavailableError
from adaptive_exit.domain.exits.ports import (
    CandleHistoryPort,
    OiSnapshotPort,
    PivotSnapshotPort,
)

logger = logging.getLogger(__name__)

PIVOT_KEY = "pivot:mtf:{}"
OI_KEY = "oi:{}:latest"
CANDLE_KEY = "tick:{}:1m:history"

# (snapshot field, level-name prefix, timeframe tag)
TIMEFRAME_NODES = (
    ("dailyPivot", "daily", SourceTag.PIVOT_DAILY),
    ("prevDailyPivot", "prevDaily", SourceTag.PIVOT_DAILY),
    ("weeklyPivot", "weekly", SourceTag.PIVOT_WEEKLY),
    ("prevWeeklyPivot", "prevWeekly", SourceTag.PIVOT_WEEKLY),
    ("monthlyPivot", "monthly", SourceTag.PIVOT_MONTHLY),
    ("prevMonthlyPivot", "prevMonthly", SourceTag.PIVOT_MONTHLY),
)
CLASSIC_FIELDS = ("pivot", "r1", "r2", "r3", "r4", "s1", "s2", "s3", "s4", "tc", "bc")
VARIANT_FIELDS = ("fibonacci", "camarilla")


def _unwrap(node: Any) -> Any:
    """Strip the publisher's ``[className, value]`` type wrapper."""
    if isinstance(node, list) and len(node) == 2 and isinstance(node[0], str):
        return node[1]
    return node


def _to_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None


def _to_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    return result if math.isfinite(result) else default


class RedisMarketDataAdapter(PivotSnapshotPort, OiSnapshotPort, CandleHistoryPort):
    """Concrete adapter reading pivot, OI and candle snapshots from Redis.

    The client is created lazily by redis-py; no connection is attempted
    until the first read.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        redis_url: str = "redis://localhost:6379/0",
        timeout_seconds: float = 0.005,
        oi_max_age_seconds: int = 180,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._redis = client if client is not None else redis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        self._oi_max_age_ms = oi_max_age_seconds * 1000
        self._clock = clock

    # ------------------------------------------------------------------
    # Raw reads
    # ------------------------------------------------------------------

    def _get_json(self, source: str, key: str) -> Any:
        try:
            raw = self._redis.get(key)
        except redis.RedisError as exc:
            raise DataUnavailableError(source, key, f"redis error: {exc}") from exc
        if not raw:
            raise DataUnavailableError(source, key, "missing")
        try:
            return _unwrap(json.loads(raw))
        except ValueError as exc:
            raise DataUnavailableError(source, key, "unparseable") from exc

    # ------------------------------------------------------------------
    # PivotSnapshotPort
    # ------------------------------------------------------------------

    def get_pivot_levels(self, underlying_scrip_code: str) -> list[PivotLevel]:
        """Flatten every positive pivot level of every timeframe.

        Args:
            underlying_scrip_code: The underlying instrument.

        Returns:
            Pivot levels named like "dailyR1" or "weeklyCamarillaH3".
        """
        key = PIVOT_KEY.format(underlying_scrip_code)
        root = self._get_json("pivot", key)
        if not isinstance(root, dict):
            raise DataUnavailableError("pivot", key, "unexpected payload")

        levels: list[PivotLevel] = []
        for field, prefix, timeframe in TIMEFRAME_NODES:
            node = _unwrap(root.get(field))
            if not isinstance(node, dict):
                continue
            for name in CLASSIC_FIELDS:
                self._add_level(levels, f"{prefix}{name.upper()}", node.get(name), timeframe)
            for variant in VARIANT_FIELDS:
                sub = _unwrap(node.get(variant))
                if not isinstance(sub, dict):
                    continue
                for name, value in sorted(sub.items()):
                    self._add_level(
                        levels, f"{prefix}{variant.capitalize()}{name.upper()}", value, timeframe
                    )

        if not levels:
            raise DataUnavailableError("pivot", key, "no positive levels")
        return levels

    @staticmethod
    def _add_level(
        levels: list[PivotLevel], name: str, value: Any, timeframe: SourceTag
    ) -> None:
        price = _to_decimal(_unwrap(value))
        if price is not None and price > 0:
            levels.append(PivotLevel(name=name, price=price, timeframe=timeframe))

    # ------------------------------------------------------------------
    # OiSnapshotPort
    # ------------------------------------------------------------------

    def get_latest_reading(self, scrip_code: str) -> OiReading:
        """Parse the latest OI snapshot into a reading.

        Raises:
            DataUnavailableError: If missing, stale, or without a known
                interpretation.
        """
        key = OI_KEY.format(scrip_code)
        data = self._get_json("oi", key)
        if not isinstance(data, dict):
            raise DataUnavailableError("oi", key, "unexpected payload")

        raw_interpretation = _unwrap(data.get("interpretation"))
        if not raw_interpretation:
            raise DataUnavailableError("oi", key, "no interpretation")
        try:
            interpretation = OiInterpretation(str(raw_interpretation).upper())
        except ValueError:
            raise DataUnavailableError(
                "oi", key, f"unknown interpretation {raw_interpretation!r}"
            ) from None

        now = self._clock()
        timestamp = data.get("timestamp")
        if isinstance(timestamp, (int, float)) and not isinstance(timestamp, bool):
            timestamp_ms = int(timestamp)
            if now - timestamp_ms > self._oi_max_age_ms:
                raise DataUnavailableError("oi", key, "stale")
        else:
            timestamp_ms = now

        return OiReading(
            timestamp_ms=timestamp_ms,
            interpretation=interpretation,
            change_percent=_to_float(data.get("oiChangePercent")),
            confidence=_to_float(data.get("interpretationConfidence")),
        )

    # ------------------------------------------------------------------
    # CandleHistoryPort
    # ------------------------------------------------------------------

    def get_recent_candles(self, scrip_code: str, count: int) -> list[Candle]:
        """Read the newest ``count`` candles and return them oldest first."""
        key = CANDLE_KEY.format(scrip_code)
        try:
            raw_candles = self._redis.lrange(key, 0, count - 1)
        except redis.RedisError as exc:
            raise DataUnavailableError("candles", key, f"redis error: {exc}") from exc

        candles: list[Candle] = []
        for raw in raw_candles or []:
            candle = self._parse_candle(raw)
            if candle is not None:
                candles.append(candle)

        candles.reverse()
        return candles

    @staticmethod
    def _parse_candle(raw: str) -> Optional[Candle]:
        try:
            data = _unwrap(json.loads(raw))
        except ValueError:
            logger.debug("Skipping unparseable candle entry")
            return None
        if not isinstance(data, dict):
            return None

        high = _to_decimal(data.get("high"))
        low = _to_decimal(data.get("low"))
        if high is None or low is None or high <= 0 or low <= 0:
            return None

        timestamp = data.get("timestamp", data.get("windowStartMillis", 0))
        return Candle(
            timestamp_ms=int(_to_float(timestamp)),
            open=_to_decimal(data.get("open")) or Decimal("0"),
            high=high,
            low=low,
            close=_to_decimal(data.get("close")) or Decimal("0"),
            volume=int(_to_float(data.get("volume"))),
        )
