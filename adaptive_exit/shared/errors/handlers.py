"""
Centralized error handlers for FastAPI.

Maps exit engine errors to HTTP responses.
No stack traces or internal details are exposed to clients.
All error responses use the ErrorResponse schema.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from adaptive_exit.domain.exits.errors import (
    DataUnavailableError,
    ExitEngineError,
    InvalidRequestError,
    UnknownPositionError,
)

logger = logging.getLogger(__name__)

HTTP_404 = 404
HTTP_422 = 422
HTTP_500 = 500
HTTP_503 = 503


def _error_response(status_code: int, error: str, detail: str | None = None) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: dict[str, str | None] = {"error": error}
    if detail:
        body["detail"] = detail
    return JSONResponse(status_code=status_code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    """Register all exit engine error handlers on the FastAPI application.

    Args:
        app: The FastAPI application instance.
    """

    @app.exception_handler(InvalidRequestError)
    async def handle_invalid_request(
        _request: Request, exc: InvalidRequestError
    ) -> JSONResponse:
        """Handle rejected open-position or target-hit parameters."""
        logger.warning("Invalid request: %s", exc.reason)
        return _error_response(HTTP_422, "Invalid request", exc.reason)

    @app.exception_handler(UnknownPositionError)
    async def handle_unknown_position(
        _request: Request, exc: UnknownPositionError
    ) -> JSONResponse:
        """Handle operations on positions that are not tracked."""
        logger.warning("Unknown position: %s", exc.scrip_code)
        return _error_response(HTTP_404, "Position not found", exc.scrip_code)

    @app.exception_handler(DataUnavailableError)
    async def handle_data_unavailable(
        _request: Request, exc: DataUnavailableError
    ) -> JSONResponse:
        """Handle market data that could not be read."""
        logger.warning("Market data unavailable: %s", exc.message)
        return _error_response(HTTP_503, "Market data unavailable", exc.source)

    @app.exception_handler(ExitEngineError)
    async def handle_exit_engine(
        _request: Request, exc: ExitEngineError
    ) -> JSONResponse:
        """Catch-all for unhandled exit engine errors."""
        logger.error("Unhandled exit engine error: %s", exc.message)
        return _error_response(HTTP_500, "Internal server error")

    @app.exception_handler(Exception)
    async def handle_unexpected(
        _request: Request, exc: Exception
    ) -> JSONResponse:
        """Catch-all for unexpected errors. Never exposes internals."""
        logger.exception("Unexpected error: %s", type(exc).__name__)
        return _error_response(HTTP_500, "Internal server error")
