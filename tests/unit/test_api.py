# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.
"""Unit tests for the timer HTTP API."""

import json

import pytest
from httpx import AsyncClient, ASGITransport

from synctimer.main import create_app


@pytest.fixture
async def client(test_settings, service):
    app = create_app(test_settings, service)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


class TestControlEndpoints:
    @pytest.mark.asyncio
    async def test_start(self, client, access_code):
        resp = await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Timer started successfully"
        assert data["timer"]["duration"] == 50
        assert data["timer"]["remainingTime"] == 50
        assert data["timer"]["isRunning"] is True

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, client, service, access_code):
        body = {"accessCode": access_code}
        await client.post("/api/timer/start", json={**body, "duration": 5})
        await service.tick(access_code)
        await service.tick(access_code)

        resp = await client.post("/api/timer/pause", json=body)
        assert resp.status_code == 200
        timer = resp.json()["timer"]
        assert (timer["remainingTime"], timer["isRunning"], timer["isPaused"]) == (30, False, True)

        resp = await client.post("/api/timer/continue", json=body)
        assert resp.status_code == 200
        assert resp.json()["timer"]["isRunning"] is True

        resp = await client.post("/api/timer/set-elapsed", json={**body, "elapsedTime": 4})
        assert resp.status_code == 200
        timer = resp.json()["timer"]
        assert timer["remainingTime"] == 10
        assert timer["elapsedTime"] == 40

        resp = await client.post("/api/timer/stop", json=body)
        assert resp.status_code == 200
        assert resp.json()["message"] == "Timer stopped successfully"
        assert resp.json()["timer"]["remainingTime"] == 0

    @pytest.mark.asyncio
    async def test_resume_alias(self, client, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        await client.post("/api/timer/pause", json={"accessCode": access_code})
        resp = await client.post("/api/timer/resume", json={"accessCode": access_code})
        assert resp.status_code == 200
        assert resp.json()["message"] == "Timer resumed successfully"

    @pytest.mark.asyncio
    async def test_numeric_string_duration(self, client, access_code):
        resp = await client.post("/api/timer/start", json={"accessCode": access_code, "duration": "2.5"})
        assert resp.status_code == 200
        assert resp.json()["timer"]["duration"] == 25


class TestAccessCodeResolution:
    @pytest.mark.asyncio
    async def test_query_parameter(self, client, access_code):
        resp = await client.post(f"/api/timer/start?accessCode={access_code}", json={"duration": 5})
        assert resp.status_code == 200
        assert resp.json()["timer"]["accessCode"] == access_code

    @pytest.mark.asyncio
    async def test_header(self, client, access_code):
        resp = await client.post(
            "/api/timer/start", json={"duration": 5}, headers={"X-Access-Code": access_code},
        )
        assert resp.status_code == 200
        assert resp.json()["timer"]["accessCode"] == access_code

    @pytest.mark.asyncio
    async def test_body_wins_over_query_and_header(self, client):
        resp = await client.post(
            "/api/timer/start?accessCode=222222",
            json={"accessCode": "111111", "duration": 5},
            headers={"X-Access-Code": "333333"},
        )
        assert resp.json()["timer"]["accessCode"] == "111111"

    @pytest.mark.asyncio
    async def test_query_wins_over_header(self, client):
        resp = await client.get(
            "/api/timer/status?accessCode=222222", headers={"X-Access-Code": "333333"},
        )
        assert resp.json()["timer"]["accessCode"] == "222222"

    @pytest.mark.asyncio
    async def test_numeric_body_code(self, client):
        resp = await client.post("/api/timer/start", json={"accessCode": 1234567, "duration": 5})
        assert resp.status_code == 200
        assert resp.json()["timer"]["accessCode"] == "1234567"

    @pytest.mark.asyncio
    async def test_missing_code(self, client):
        resp = await client.post("/api/timer/start", json={"duration": 5})
        assert resp.status_code == 400
        data = resp.json()
        assert data["code"] == "ACCESS_CODE_REQUIRED"
        assert data["error"] == data["message"]
        assert "trace_id" in data

    @pytest.mark.asyncio
    async def test_malformed_code(self, client, service):
        resp = await client.post("/api/timer/start", json={"accessCode": "12ab", "duration": 5})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_ACCESS_CODE"
        assert len(service.registry) == 0

    @pytest.mark.asyncio
    async def test_non_json_body_falls_back_to_query(self, client, access_code):
        resp = await client.post(
            f"/api/timer/start?accessCode={access_code}", content=b"not json",
        )
        # code resolved from the query, so the failure is about the duration
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_DURATION"


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["stop", "pause", "continue", "set-elapsed"])
    async def test_missing_timer_is_404(self, client, access_code, path):
        resp = await client.post(f"/api/timer/{path}", json={"accessCode": access_code, "elapsedTime": 1})
        assert resp.status_code == 404
        assert resp.json()["code"] == "TIMER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_invalid_duration(self, client, access_code):
        resp = await client.post("/api/timer/start", json={"accessCode": access_code, "duration": -1})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_DURATION"

    @pytest.mark.asyncio
    async def test_huge_duration_is_rejected_not_crashed(self, client, access_code):
        resp = await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 1e308})
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_DURATION"

    @pytest.mark.asyncio
    async def test_pause_twice_conflicts(self, client, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        await client.post("/api/timer/pause", json={"accessCode": access_code})
        resp = await client.post("/api/timer/pause", json={"accessCode": access_code})
        assert resp.status_code == 409
        assert resp.json()["error"] == "Timer is not running or already paused"

    @pytest.mark.asyncio
    async def test_resume_running_conflicts(self, client, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        resp = await client.post("/api/timer/continue", json={"accessCode": access_code})
        assert resp.status_code == 409
        assert resp.json()["code"] == "INVALID_TRANSITION"

    @pytest.mark.asyncio
    async def test_elapsed_exceeds_duration(self, client, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        resp = await client.post(
            "/api/timer/set-elapsed", json={"accessCode": access_code, "elapsedTime": 6},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "ELAPSED_EXCEEDS_DURATION"

    @pytest.mark.asyncio
    async def test_trace_id_propagated(self, client, access_code):
        resp = await client.post(
            "/api/timer/stop", json={"accessCode": access_code}, headers={"X-Trace-Id": "trace-abc"},
        )
        assert resp.headers["X-Trace-Id"] == "trace-abc"
        assert resp.json()["trace_id"] == "trace-abc"


class TestQueries:
    @pytest.mark.asyncio
    async def test_status_of_unknown_timer(self, client, access_code):
        resp = await client.get(f"/api/timer/status?accessCode={access_code}")
        assert resp.status_code == 200
        timer = resp.json()["timer"]
        assert timer["id"] is None
        assert timer["isRunning"] is False
        assert timer["precision"] == 1.0

    @pytest.mark.asyncio
    async def test_active(self, client):
        await client.post("/api/timer/start", json={"accessCode": "111111", "duration": 5})
        await client.post("/api/timer/start", json={"accessCode": "222222", "duration": 9})
        resp = await client.get("/api/timer/active")
        assert resp.status_code == 200
        data = resp.json()
        assert data["count"] == 2
        assert {t["accessCode"] for t in data["timers"]} == {"111111", "222222"}

    @pytest.mark.asyncio
    async def test_state_file_written(self, client, state_file, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        saved = json.loads(state_file.read_text())
        assert saved[access_code]["duration"] == 50


class TestStreamRejections:
    @pytest.mark.asyncio
    async def test_missing_code(self, client):
        resp = await client.get("/api/timer/stream")
        assert resp.status_code == 400
        assert resp.json()["code"] == "ACCESS_CODE_REQUIRED"

    @pytest.mark.asyncio
    async def test_malformed_code(self, client, service):
        resp = await client.get("/api/timer/stream?accessCode=abc")
        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_ACCESS_CODE"
        assert service.hub.count() == 0


class TestObservability:
    @pytest.mark.asyncio
    async def test_health(self, client, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["timers"] == 1
        assert data["running"] == 1
        assert data["snapshot"].startswith("file:")

    @pytest.mark.asyncio
    async def test_api_health_alias(self, client):
        resp = await client.get("/api/health")
        assert resp.json()["success"] is True

    @pytest.mark.asyncio
    async def test_metrics(self, client, access_code):
        await client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
        resp = await client.get("/api/metrics")
        assert resp.status_code == 200
        data = resp.json()
        assert data["counters"]["timer_started"] == 1
        assert data["counters"]["snapshot_saved"] >= 1
        assert data["gauges"]["timers"] == 1
