"""Tests for the event intake endpoint."""

from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.web.event_routes import router


@pytest.fixture
def sender():
    sender = Mock()
    sender.dispatcher.event_names = ["podcast/retry-job", "podcast/uploaded"]
    return sender


@pytest.fixture
def app(sender):
    app = FastAPI()
    app.include_router(router)
    app.state.config = Mock(EVENT_API_KEY="secret-key")
    app.state.event_sender = sender
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


HEADERS = {"X-Event-Key": "secret-key"}


class TestReceiveEvent:
    """Tests for POST /api/events."""

    def test_accepts_known_event(self, client, sender):
        response = client.post(
            "/api/events",
            json={"name": "podcast/uploaded", "data": {"projectId": "p-1"}, "id": "evt-1"},
            headers=HEADERS,
        )

        assert response.status_code == 202
        assert response.json() == {"id": "evt-1", "name": "podcast/uploaded", "status": "accepted"}
        sender.send.assert_called_once_with("podcast/uploaded", {"projectId": "p-1"}, event_id="evt-1")

    def test_generates_event_id(self, client, sender):
        response = client.post("/api/events", json={"name": "podcast/retry-job"}, headers=HEADERS)

        assert response.status_code == 202
        event_id = response.json()["id"]
        assert event_id
        assert sender.send.call_args.kwargs["event_id"] == event_id

    def test_unknown_event(self, client, sender):
        response = client.post("/api/events", json={"name": "podcast/deleted"}, headers=HEADERS)

        assert response.status_code == 404
        sender.send.assert_not_called()

    def test_missing_key(self, client, sender):
        response = client.post("/api/events", json={"name": "podcast/uploaded"})

        assert response.status_code == 401
        sender.send.assert_not_called()

    def test_wrong_key(self, client):
        response = client.post(
            "/api/events", json={"name": "podcast/uploaded"}, headers={"X-Event-Key": "nope"}
        )
        assert response.status_code == 401

    def test_not_configured(self, app, client):
        app.state.config = Mock(EVENT_API_KEY="")

        response = client.post("/api/events", json={"name": "podcast/uploaded"}, headers=HEADERS)

        assert response.status_code == 503

    def test_requires_name(self, client):
        response = client.post("/api/events", json={"data": {}}, headers=HEADERS)
        assert response.status_code == 422
