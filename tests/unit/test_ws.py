# Copyright (c) 2026 SyncTimer Contributors. All Rights Reserved.
"""Unit tests for the WebSocket status push and app lifespan."""

import json

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from synctimer.main import create_app


class TestTimerWebSocket:
    def test_receives_current_status_then_updates(self, test_settings, service_factory, access_code):
        app = create_app(test_settings, service_factory())
        with TestClient(app) as client:
            with client.websocket_connect(f"/ws/timer/{access_code}") as ws:
                first = ws.receive_json()
                assert first["accessCode"] == access_code
                assert first["id"] is None

                resp = client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
                assert resp.status_code == 200

                update = ws.receive_json()
                assert update["remainingTime"] == 50
                assert update["isRunning"] is True

    def test_two_clients_see_same_payload(self, test_settings, service_factory, access_code):
        app = create_app(test_settings, service_factory())
        with TestClient(app) as client:
            with client.websocket_connect(f"/ws/timer/{access_code}") as a, \
                    client.websocket_connect(f"/ws/timer/{access_code}") as b:
                a.receive_json()
                b.receive_json()
                client.post("/api/timer/start", json={"accessCode": access_code, "duration": 7})
                assert a.receive_json() == b.receive_json()

    def test_malformed_code_closed_with_policy_violation(self, test_settings, service_factory):
        app = create_app(test_settings, service_factory())
        with TestClient(app) as client:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                with client.websocket_connect("/ws/timer/12ab"):
                    pass
            assert exc_info.value.code == 1008


class TestLifespan:
    def test_restores_and_saves(self, test_settings, service_factory, state_file, access_code):
        first = service_factory()
        with TestClient(create_app(test_settings, first)) as client:
            client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})
            client.post("/api/timer/pause", json={"accessCode": access_code})

        saved = json.loads(state_file.read_text())
        assert saved[access_code]["isPaused"] is True

        second = service_factory()
        with TestClient(create_app(test_settings, second)) as client:
            timer = client.get(f"/api/timer/status?accessCode={access_code}").json()["timer"]
            assert timer["isPaused"] is True
            assert timer["remainingTime"] == 50
            assert timer["id"] == saved[access_code]["id"]

    def test_running_timer_resumes_after_restart(self, test_settings, service_factory, access_code):
        first = service_factory()
        with TestClient(create_app(test_settings, first)) as client:
            client.post("/api/timer/start", json={"accessCode": access_code, "duration": 5})

        second = service_factory()
        with TestClient(create_app(test_settings, second)) as client:
            assert second.ticks.is_active(access_code)
            assert client.get("/health").json()["running"] == 1
