"""
Tests for the HTTP API.

Tests cover:
- Health checks and metrics
- POST/GET/PUT/DELETE /messages round trips
- Error status codes (404, 409, 422)
- Request ID header
"""

import pytest
from fastapi.testclient import TestClient

from msgcache.main import app
from msgcache.validation import MAX_CONTENT_LENGTH


T1 = 1736935200000


@pytest.fixture(scope="function")
def client(test_settings):
    """Create test client; the lifespan opens a fresh database per test."""
    with TestClient(app) as test_client:
        yield test_client


def create_message(client, message_id: int, content: str = "Hello", created_at: int = T1, updated_at: int = T1):
    """Helper to create a message via the API."""
    response = client.post(
        "/messages",
        json={
            "message_id": message_id,
            "content": content,
            "created_at": created_at,
            "updated_at": updated_at,
        },
    )
    assert response.status_code == 201
    return response


class TestHealth:
    """Test health endpoints."""

    def test_live(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_request_id_header(self, client):
        response = client.get("/health/live")

        assert "x-request-id" in response.headers


class TestCreateMessage:
    """Test POST /messages."""

    def test_create(self, client):
        response = create_message(client, 1)

        assert response.json() == {"status": "ok"}

    def test_create_defaults_timestamps(self, client):
        response = client.post("/messages", json={"message_id": 2, "content": "no timestamps"})
        assert response.status_code == 201

        data = client.get("/messages/2").json()
        assert data["created_at"] > 0
        assert data["updated_at"] == data["created_at"]

    def test_duplicate_returns_409(self, client):
        create_message(client, 1, "original")

        response = client.post(
            "/messages",
            json={"message_id": 1, "content": "again", "created_at": T1, "updated_at": T1},
        )

        assert response.status_code == 409
        assert response.json() == {"detail": "Message with ID 1 already exists"}
        assert client.get("/messages/1").json()["content"] == "original"

    def test_blank_content_returns_422(self, client):
        response = client.post("/messages", json={"message_id": 1, "content": "   "})

        assert response.status_code == 422
        assert response.json() == {"detail": "Content cannot be empty"}

    def test_oversized_content_returns_422(self, client):
        response = client.post(
            "/messages",
            json={"message_id": 1, "content": "x" * (MAX_CONTENT_LENGTH + 1)},
        )

        assert response.status_code == 422
        assert "exceeds maximum length" in response.json()["detail"]

    def test_unencodable_content_returns_422(self, client):
        """A lone surrogate escape in the JSON body is rejected, not stored."""
        response = client.post(
            "/messages",
            content='{"message_id": 1, "content": "hi \\ud800"}',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        assert response.json() == {"detail": "Content must be valid UTF-8 text"}
        assert client.get("/messages/count").json()["count"] == 0

    def test_negative_id_returns_422(self, client):
        response = client.post("/messages", json={"message_id": -1, "content": "hi"})

        assert response.status_code == 422
        assert "Invalid message ID" in response.json()["detail"]

    def test_bad_timestamps_return_422(self, client):
        response = client.post(
            "/messages",
            json={"message_id": 1, "content": "hi", "created_at": T1, "updated_at": T1 - 1},
        )

        assert response.status_code == 422

    def test_missing_content_returns_422(self, client):
        response = client.post("/messages", json={"message_id": 1})

        assert response.status_code == 422


class TestReadMessages:
    """Test GET routes."""

    def test_get_message(self, client):
        create_message(client, 7, "hello")

        response = client.get("/messages/7")

        assert response.status_code == 200
        data = response.json()
        assert data["message_id"] == 7
        assert data["content"] == "hello"
        assert data["created_at"] == T1
        assert data["updated_at"] == T1
        assert "id" in data

    def test_get_missing_returns_404(self, client):
        response = client.get("/messages/7")

        assert response.status_code == 404
        assert response.json() == {"detail": "Message with ID 7 not found"}

    def test_get_zero_id_returns_422(self, client):
        response = client.get("/messages/0")

        assert response.status_code == 422

    def test_list_messages(self, client):
        for message_id in (3, 1, 2):
            create_message(client, message_id, f"m{message_id}")

        response = client.get("/messages")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [m["message_id"] for m in data["data"]] == [3, 1, 2]

    def test_list_empty(self, client):
        response = client.get("/messages")

        assert response.json() == {"data": [], "total": 0}

    def test_count(self, client):
        assert client.get("/messages/count").json() == {"count": 0}

        create_message(client, 1)
        create_message(client, 2)

        assert client.get("/messages/count").json() == {"count": 2}

    def test_exists(self, client):
        assert client.get("/messages/5/exists").json() == {"message_id": 5, "exists": False}

        create_message(client, 5)

        assert client.get("/messages/5/exists").json() == {"message_id": 5, "exists": True}


class TestUpdateMessage:
    """Test PUT /messages/{message_id}."""

    def test_update(self, client):
        create_message(client, 1, "hello")

        response = client.put("/messages/1", json={"content": "world"})

        assert response.status_code == 200
        data = response.json()
        assert data["content"] == "world"
        assert data["created_at"] == T1
        assert data["updated_at"] >= T1

    def test_update_missing_returns_404(self, client):
        response = client.put("/messages/1", json={"content": "world"})

        assert response.status_code == 404
        assert client.get("/messages/count").json() == {"count": 0}

    def test_update_blank_returns_422(self, client):
        create_message(client, 1, "hello")

        response = client.put("/messages/1", json={"content": ""})

        assert response.status_code == 422
        assert client.get("/messages/1").json()["content"] == "hello"


class TestDeleteMessage:
    """Test DELETE /messages/{message_id}."""

    def test_delete(self, client):
        create_message(client, 1)

        response = client.delete("/messages/1")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert client.get("/messages/1/exists").json()["exists"] is False

    def test_delete_missing_returns_404(self, client):
        response = client.delete("/messages/1")

        assert response.status_code == 404
        assert response.json() == {"detail": "Message with ID 1 not found"}


class TestMetrics:
    """Test the /metrics endpoint."""

    def test_metrics_exposed(self, client):
        create_message(client, 1)
        client.get("/messages/1")

        response = client.get("/metrics")

        assert response.status_code == 200
        body = response.text
        assert "http_requests_total" in body
        assert "message_operations_total" in body
        assert 'operation="insert_message"' in body
