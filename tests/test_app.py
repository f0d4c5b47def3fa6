from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from autodialer.app import create_app
from autodialer.errors import EmptyQueue
from autodialer.sequencer import DialerSequencer


@pytest.fixture
def initiator():
    mock = AsyncMock()
    mock.place.return_value = "CA1"
    return mock


@pytest.fixture
def client(initiator):
    app = create_app(DialerSequencer(initiator), operator_number="")
    with TestClient(app) as c:
        yield c


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.text == "ok"


def test_initial_session_is_idle(client):
    assert client.get("/session").json() == {
        "state": "idle",
        "current_number": None,
        "call_count": 0,
        "queue": [],
    }


class TestNumbers:
    def test_add_number(self, client):
        resp = client.post("/numbers", json={"number": " +15550100 "})
        assert resp.status_code == 200
        assert resp.json()["queue"] == ["+15550100"]

    def test_invalid_number_rejected(self, client):
        resp = client.post("/numbers", json={"number": "12"})
        assert resp.status_code == 422
        assert client.get("/session").json()["queue"] == []

    def test_bulk_import(self, client):
        resp = client.post("/numbers/import", json={"text": "+15550100\nnope\n\n555-0101\n"})
        body = resp.json()
        assert body["added"] == 2
        assert body["skipped"] == ["nope"]
        assert body["message"] == "Added 2 numbers, skipped 1 invalid numbers"
        assert body["session"]["queue"] == ["+15550100", "555-0101"]

    def test_remove_number(self, client):
        client.post("/numbers/import", json={"text": "+15550100\n+15550101"})
        resp = client.delete("/numbers/+15550100")
        assert resp.json()["queue"] == ["+15550101"]

    def test_clear_numbers(self, client):
        client.post("/numbers/import", json={"text": "+15550100\n+15550101"})
        resp = client.delete("/numbers")
        assert resp.json()["queue"] == []


class TestSession:
    def test_start_dials_first_number(self, client, initiator):
        client.post("/numbers/import", json={"text": "+15550100\n+15550101"})
        body = client.post("/session/start").json()
        assert body["state"] == "calling"
        assert body["current_number"] == "+15550100"
        assert body["call_count"] == 1
        assert body["queue"] == ["+15550101"]

    def test_start_with_empty_queue_stays_idle(self, client):
        body = client.post("/session/start").json()
        assert body["state"] == "idle"
        assert body["call_count"] == 0

    def test_stop(self, client):
        client.post("/numbers/import", json={"text": "+15550100\n+15550101"})
        client.post("/session/start")
        body = client.post("/session/stop").json()
        assert body["state"] == "idle"
        assert body["current_number"] is None
        assert body["queue"] == ["+15550101"]


class TestTwilioCallbacks:
    def test_status_callbacks_drive_session(self, client):
        client.post("/numbers/import", json={"text": "+15550100\n+15550101"})
        client.post("/session/start")

        resp = client.post("/twilio/status", data={"CallStatus": "ringing", "CallSid": "CA1"})
        assert resp.status_code == 204
        assert client.get("/session").json()["state"] == "ringing"

        client.post("/twilio/status", data={"CallStatus": "in-progress", "CallSid": "CA1"})
        assert client.get("/session").json()["state"] == "answered"

        client.post("/twilio/status", data={"CallStatus": "completed", "CallSid": "CA1"})
        body = client.get("/session").json()
        assert body["state"] == "calling"
        assert body["current_number"] == "+15550101"
        assert body["call_count"] == 2

    def test_initiated_status_changes_nothing(self, client):
        client.post("/numbers", json={"number": "+15550100"})
        client.post("/session/start")
        resp = client.post("/twilio/status", data={"CallStatus": "initiated", "CallSid": "CA1"})
        assert resp.status_code == 204
        assert client.get("/session").json()["state"] == "calling"

    def test_stray_completed_while_idle_ignored(self, client):
        resp = client.post("/twilio/status", data={"CallStatus": "completed", "CallSid": "CA9"})
        assert resp.status_code == 204
        assert client.get("/session").json()["state"] == "idle"


class TestTwiml:
    def test_without_operator_keeps_line_open(self, client):
        resp = client.get("/twiml")
        assert resp.headers["content-type"].startswith("application/xml")
        assert "<Pause" in resp.text

    def test_bridges_to_operator(self, initiator):
        app = create_app(DialerSequencer(initiator), operator_number="+15125550000")
        with TestClient(app) as c:
            resp = c.post("/twiml")
        assert resp.text == "<Response><Dial>+15125550000</Dial></Response>"


def test_dialer_error_becomes_json_response(initiator):
    machine = MagicMock()
    machine.process.side_effect = EmptyQueue()
    app = create_app(DialerSequencer(initiator, machine=machine), operator_number="")
    with TestClient(app) as c:
        resp = c.post("/session/start")
    assert resp.status_code == 500
    assert resp.json()["error"] == "EMPTY_QUEUE"
