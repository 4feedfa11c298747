"""
Domain-specific errors for the exits bounded context.

All errors raised from the domain layer must be defined here.
These are mapped to HTTP responses at the interface layer.
No framework imports allowed.
"""


class ExitEngineError(Exception):
    """Base error for all exit engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class DataUnavailableError(ExitEngineError):
    """Raised when a pivot, candle or OI source is missing or stale.

    Always recovered locally by a degraded computation path.
    """

    def __init__(self, source: str, key: str, reason: str = "missing") -> None:
        super().__init__(f"{source} data unavailable for {key}: {reason}")
        self.source = source
        self.key = key
        self.reason = reason


class InvalidRequestError(ExitEngineError):
    """Raised when open-position or target-hit parameters are invalid."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Invalid request: {reason}")
        self.reason = reason


class UnknownPositionError(ExitEngineError):
    """Raised when an operation targets a position that is not tracked."""

    def __init__(self, scrip_code: str) -> None:
        super().__init__(f"Unknown position: {scrip_code}")
        self.scrip_code = scrip_code
