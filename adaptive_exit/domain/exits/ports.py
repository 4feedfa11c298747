"""
Port interfaces (ABCs) for the exits bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.
"""

from abc import ABC, abstractmethod

from adaptive_exit.domain.exits.entities import Candle, OiReading, PivotLevel


class PivotSnapshotPort(ABC):
    """Port for reading the multi-timeframe pivot snapshot of an underlying."""

    @abstractmethod
    def get_pivot_levels(self, underlying_scrip_code: str) -> list[PivotLevel]:
        """Return every positive pivot level across all timeframes.

        Raises:
            DataUnavailableError: If the snapshot is missing, empty or unreadable.
        """
        raise NotImplementedError


class OiSnapshotPort(ABC):
    """Port for reading the latest OI interpretation of an option."""

    @abstractmethod
    def get_latest_reading(self, scrip_code: str) -> OiReading:
        """Return the latest OI reading, stamped with its observation time.

        Raises:
            DataUnavailableError: If no fresh snapshot exists (illiquid option).
        """
        raise NotImplementedError


class CandleHistoryPort(ABC):
    """Port for reading recent one-minute option candles."""

    @abstractmethod
    def get_recent_candles(self, scrip_code: str, count: int) -> list[Candle]:
        """Return up to ``count`` most recent candles, oldest first.

        Raises:
            DataUnavailableError: If the history cannot be read.
        """
        raise NotImplementedError
