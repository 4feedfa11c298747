"""
Tests for the exits API endpoints.

Routes run against the in-memory coordinator from conftest through
FastAPI dependency overrides. The application lifespan is not entered,
so the OI poller never starts.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from adaptive_exit.domain.exits.errors import DataUnavailableError
from adaptive_exit.interfaces.exits.dependencies import (
    get_coordinator,
    get_oi_scheduler,
    get_open_position_use_case,
)
from adaptive_exit.main import app
from adaptive_exit.realtime.scheduler import OiRefreshScheduler
from adaptive_exit.shared.security.headers import SECURE_HEADERS

SCRIP = "NIFTY24OCT22500CE"
BASE = "/api/v1/exits"

OPEN_BODY = {
    "scrip_code": SCRIP,
    "underlying_scrip_code": "NIFTY",
    "side": "LONG",
    "quantity": 500,
    "lot_size": 50,
    "entry_price": "22.50",
    "underlying_entry_price": "3057.60",
    "delta": "0.35",
    "t1": "26.00",
    "stop_loss": "18.00",
}


@pytest.fixture
def scheduler(coordinator, tracker):
    scheduler = OiRefreshScheduler(coordinator, tracker)
    yield scheduler
    scheduler.stop()


@pytest.fixture
def client(coordinator, scheduler):
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    app.dependency_overrides[get_oi_scheduler] = lambda: scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def opened(client):
    response = client.post(f"{BASE}/positions", json=OPEN_BODY)
    assert response.status_code == 201
    return response.json()


class TestOpenPositionEndpoint:
    """Tests for POST /api/v1/exits/positions."""

    def test_returns_ladder_and_allocation(self, opened) -> None:
        ladder = opened["target_ladder"]
        assert Decimal(ladder["t1"]) == Decimal("32.10")
        assert Decimal(ladder["t2"]) == Decimal("35")
        assert Decimal(ladder["t3"]) == Decimal("40")
        assert Decimal(ladder["t4"]) == Decimal("40.85")
        assert Decimal(ladder["stop_loss"]) == Decimal("16.35")
        assert ladder["confluence"] is True
        assert opened["lot_allocation"] == {"1": 200, "2": 150, "3": 100, "4": 50}
        assert opened["remaining_quantity"] == 500
        assert opened["oi_window"] == []

    def test_invalid_side_rejected(self, client) -> None:
        response = client.post(f"{BASE}/positions", json={**OPEN_BODY, "side": "FLAT"})
        assert response.status_code == 422

    def test_non_positive_price_rejected(self, client) -> None:
        response = client.post(f"{BASE}/positions", json={**OPEN_BODY, "entry_price": "0"})
        assert response.status_code == 422

    def test_quantity_not_lot_multiple(self, client) -> None:
        """Domain validation errors map to 422 with the shared error body."""
        response = client.post(f"{BASE}/positions", json={**OPEN_BODY, "quantity": 120})
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "Invalid request"
        assert "lot_size" in body["detail"]


class TestReadEndpoints:
    """Tests for GET positions."""

    def test_get_position(self, client, opened) -> None:
        response = client.get(f"{BASE}/positions/{SCRIP}")
        assert response.status_code == 200
        assert response.json()["scrip_code"] == SCRIP

    def test_unknown_position_404(self, client) -> None:
        response = client.get(f"{BASE}/positions/UNKNOWN")
        assert response.status_code == 404
        assert response.json()["error"] == "Position not found"

    def test_list_positions(self, client, opened) -> None:
        body = client.get(f"{BASE}/positions").json()
        assert body["count"] == 1
        assert body["positions"][0]["scrip_code"] == SCRIP


class TestTargetHitEndpoint:
    """Tests for POST /api/v1/exits/positions/{scrip}/target-hits."""

    def test_partial_exit(self, client, opened) -> None:
        response = client.post(f"{BASE}/positions/{SCRIP}/target-hits", json={"target_index": 1})
        assert response.status_code == 200
        body = response.json()
        assert body["quantity"] == 200
        assert body["reason"] == "T1 partial"
        assert body["remaining_quantity"] == 300
        assert body["close_all"] is False

    def test_exit_flag_closes_all(self, client, opened, coordinator) -> None:
        with coordinator.locked(SCRIP) as state:
            state.exit_flag = True
            state.exit_pattern = "LONG_UNWINDING 3/5"
        body = client.post(
            f"{BASE}/positions/{SCRIP}/target-hits", json={"target_index": 3}
        ).json()
        assert body["quantity"] == 500
        assert body["close_all"] is True
        assert client.get(f"{BASE}/positions/{SCRIP}").status_code == 404

    def test_index_out_of_range(self, client, opened) -> None:
        response = client.post(f"{BASE}/positions/{SCRIP}/target-hits", json={"target_index": 5})
        assert response.status_code == 422

    def test_unknown_position(self, client) -> None:
        response = client.post(f"{BASE}/positions/UNKNOWN/target-hits", json={"target_index": 1})
        assert response.status_code == 404


class TestImmediateExitEndpoint:
    def test_no_exit(self, client, opened) -> None:
        body = client.post(f"{BASE}/positions/{SCRIP}/immediate-exit").json()
        assert body == {"scrip_code": SCRIP, "exit": False, "decision": None}

    def test_exit_when_flagged(self, client, opened, coordinator) -> None:
        with coordinator.locked(SCRIP) as state:
            state.immediate_exit_flag = True
            state.immediate_exit_pattern = "SHORT_BUILDUP 3/5"
        body = client.post(f"{BASE}/positions/{SCRIP}/immediate-exit").json()
        assert body["exit"] is True
        assert body["decision"]["reason"] == "OI_EXIT(SHORT_BUILDUP 3/5)"
        assert body["decision"]["quantity"] == 500


class TestClosePositionEndpoint:
    def test_close_is_idempotent(self, client, opened) -> None:
        first = client.delete(f"{BASE}/positions/{SCRIP}")
        second = client.delete(f"{BASE}/positions/{SCRIP}")
        assert first.json() == {"scrip_code": SCRIP, "closed": True}
        assert second.status_code == 200
        assert second.json()["closed"] is False
        assert client.post(
            f"{BASE}/positions/{SCRIP}/target-hits", json={"target_index": 1}
        ).status_code == 404


class TestSchedulerEndpoints:
    def test_status(self, client, opened) -> None:
        body = client.get(f"{BASE}/scheduler").json()
        assert body["running"] is False
        assert body["open_positions"] == 1
        assert body["recent_tasks"] == []

    def test_manual_tick(self, client, opened) -> None:
        response = client.post(f"{BASE}/scheduler/run")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["details"]["submitted"] == 1
        recent = client.get(f"{BASE}/scheduler").json()["recent_tasks"]
        assert recent[0]["task_name"] == "oi_tick_manual"


class TestErrorMapping:
    """Tests for centralized error handlers."""

    def test_data_unavailable_maps_to_503(self, client) -> None:
        use_case = MagicMock()
        use_case.execute.side_effect = DataUnavailableError("pivot", "pivot:mtf:NIFTY")
        app.dependency_overrides[get_open_position_use_case] = lambda: use_case
        response = client.post(f"{BASE}/positions", json=OPEN_BODY)
        assert response.status_code == 503
        assert response.json() == {"error": "Market data unavailable", "detail": "pivot"}

    def test_unexpected_error_hides_internals(self) -> None:
        use_case = MagicMock()
        use_case.execute.side_effect = RuntimeError("secret")
        app.dependency_overrides[get_open_position_use_case] = lambda: use_case
        try:
            client = TestClient(app, raise_server_exceptions=False)
            response = client.post(f"{BASE}/positions", json=OPEN_BODY)
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}


class TestSecurityHeaders:
    def test_security_headers_present(self, client) -> None:
        response = client.get(f"{BASE}/positions")
        for header_name, header_value in SECURE_HEADERS.items():
            assert response.headers[header_name] == header_value
