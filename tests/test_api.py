"""
Tests for the control API.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from api.routes import router
from models.trade import SchedulerState


@pytest.fixture
def scheduler(make_scheduler):
    scheduler, _ = make_scheduler(wallet_count=3)
    return scheduler


@pytest.fixture
def client(scheduler):
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    app.state.scheduler = scheduler
    return TestClient(app)


class TestReadEndpoints:
    """GET endpoint tests"""

    def test_root(self, client):
        assert client.get("/api/v1/").json()["status"] == "running"

    def test_health(self, client):
        body = client.get("/api/v1/health").json()
        assert body["status"] == "healthy"
        assert body["state"] == SchedulerState.IDLE.value
        assert body["paused"] is False

    def test_status(self, client):
        body = client.get("/api/v1/status").json()
        assert body["summary"]["buys"] == 0
        assert body["summary"]["wallets"]["available"] == 3
        assert body["sell_trigger"]["mode"] == "fixed"
        assert body["sizing"] == "dynamic"

    def test_wallets(self, client, scheduler):
        wallets = client.get("/api/v1/wallets").json()["wallets"]
        assert [w["index"] for w in wallets] == [1, 2, 3]

        address = wallets[0]["address"]
        scheduler.ledger.mark_holding(address, 42)
        holding = client.get("/api/v1/wallets", params={"status": "holding"}).json()["wallets"]
        assert [w["address"] for w in holding] == [address]

    def test_single_wallet(self, client, scheduler):
        address = next(iter(scheduler.ledger)).address
        assert client.get(f"/api/v1/wallets/{address}").json()["status"] == "available"
        assert client.get("/api/v1/wallets/unknown").status_code == 404

    def test_invalid_status_filter(self, client):
        assert client.get("/api/v1/wallets", params={"status": "bogus"}).status_code == 422


class TestControlEndpoints:
    """POST endpoint tests"""

    def test_pause_resume(self, client, scheduler):
        assert client.post("/api/v1/pause").json()["paused"] is True
        assert scheduler.control.is_paused is True
        assert client.post("/api/v1/resume").json()["paused"] is False
        assert scheduler.control.is_paused is False

    def test_toggle(self, client, scheduler):
        assert client.post("/api/v1/toggle").json()["paused"] is True
        assert client.post("/api/v1/toggle").json()["paused"] is False

    def test_sell_recent(self, client, scheduler):
        body = client.post("/api/v1/sell-recent").json()
        assert body["count"] == 3
        assert client.get("/api/v1/status").json()["sell_requested"] is True
        # Served by the control loop, nothing sold from the request itself
        assert scheduler.session.sell_counter == 0

        client.post("/api/v1/sell-recent", params={"count": 5})
        assert scheduler.control.take_sell_request() == 5

    def test_sell_recent_rejects_zero(self, client):
        assert client.post("/api/v1/sell-recent", params={"count": 0}).status_code == 422

    def test_stop(self, client, scheduler):
        assert client.post("/api/v1/stop").json()["message"] == "Stop requested"
        assert scheduler.control.stop_requested is True
        assert client.post("/api/v1/stop").json()["message"] == "Stop already requested"


def test_missing_scheduler_is_unavailable():
    app = FastAPI()
    app.include_router(router)
    assert TestClient(app).get("/health").status_code == 503


def test_app_runs_scheduler_for_its_lifetime(scheduler):
    from main import create_app

    with TestClient(create_app(scheduler, max_ticks=3)) as client:
        assert client.get("/api/v1/health").status_code == 200

    assert scheduler.state == SchedulerState.STOPPED
    assert scheduler.control.stop_requested is True
