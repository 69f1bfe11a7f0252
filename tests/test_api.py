"""Tests for the FastAPI routes."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from sessionmeter.api.server import create_app
from sessionmeter.monitor import UsageMonitor
from sessionmeter.usage.ingestor import UsageLoader

from conftest import assistant_line


@pytest.fixture
def monitor(data_dir: Path, write_jsonl) -> UsageMonitor:
    write_jsonl(data_dir / "p" / "s.jsonl", [assistant_line("2026-02-19T10:10:00Z", input_tokens=1000, output_tokens=0)])
    return UsageMonitor(UsageLoader(str(data_dir)), interval=60)


@pytest.fixture
def client(monitor: UsageMonitor) -> TestClient:
    app = create_app()
    app.state.monitor = monitor
    return TestClient(app)


class TestAPIRoutes:
    def test_status(self, client):
        resp = client.get("/api/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["monitor"]["cycles"] == 0
        assert data["monitor"]["plan_override"] is None

    def test_snapshot_before_first_cycle(self, client):
        resp = client.get("/api/usage/snapshot")
        assert resp.status_code == 200
        data = resp.json()
        assert data["has_active_session"] is False
        assert data["time_remaining"] == "N/A"

    def test_refresh(self, client, monitor):
        resp = client.post("/api/usage/refresh")
        assert resp.status_code == 200
        data = resp.json()
        assert "current_tokens" in data
        assert "burn_rate" in data
        assert monitor.cycles == 1
        assert client.get("/api/usage/snapshot").json()["computed_at"] == data["computed_at"]

    def test_get_plan(self, client):
        data = client.get("/api/usage/plan").json()
        assert data["plan"] == "Pro"
        assert data["token_limit"] == 44_000
        assert data["is_manual_plan"] is False

    def test_set_plan(self, client, monitor):
        resp = client.put("/api/usage/plan", json={"plan": "max20"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["plan"] == "Max20"
        assert data["token_limit"] == 880_000
        assert data["is_manual_plan"] is True
        assert monitor.snapshot.token_limit == 880_000

    def test_set_plan_auto(self, client):
        client.put("/api/usage/plan", json={"plan": "max5"})
        data = client.put("/api/usage/plan", json={"plan": "auto"}).json()
        assert data["is_manual_plan"] is False
        assert data["plan"] == data["detected_plan"]

    def test_set_unknown_plan(self, client):
        resp = client.put("/api/usage/plan", json={"plan": "enterprise"})
        assert resp.status_code == 400
        assert "Unknown plan" in resp.json()["detail"]


class TestLifespan:
    def test_installed_monitor_not_replaced(self, monitor):
        app = create_app()
        app.state.monitor = monitor
        with TestClient(app) as c:
            assert c.get("/api/status").status_code == 200
        assert app.state.monitor is monitor
        assert not monitor.running
