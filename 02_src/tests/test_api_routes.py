"""Tests for the FastAPI routes of the reference server."""

import base64
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from dmchat.api import create_fastapi_app
from dmchat.app import Application
from dmchat.llm import LLMError


@pytest.fixture
def client(mock_llm):
    application = Application(db_path=":memory:", llm_provider=mock_llm)
    with TestClient(create_fastapi_app(application)) as test_client:
        yield test_client


def create_chat(client) -> str:
    response = client.post("/api/chat/create", json={"title": "Caves"})
    assert response.status_code == 200
    return response.json()["chatToken"]


class TestChatRoutes:
    """Tests for /api/chat."""

    def test_create_and_empty_history(self, client):
        chat_id = create_chat(client)

        response = client.get(f"/api/chat/{chat_id}/history")

        assert response.status_code == 200
        assert response.json() == []

    def test_create_without_body(self, client):
        response = client.post("/api/chat/create")
        assert response.status_code == 200
        assert response.json()["chatToken"]

    def test_generate(self, client):
        chat_id = create_chat(client)

        response = client.post(
            f"/api/chat/generate/{chat_id}",
            json={
                "message": "I enter",
                "previousVectorMemory": [],
                "files": [
                    {
                        "name": "notes.txt",
                        "mimeType": "text/plain",
                        "data": base64.b64encode(b"Trap!").decode("ascii"),
                    }
                ],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert [m["role"] for m in body["history"]] == ["user", "assistant"]
        assert body["history"][0]["text"] == "I enter\n\n[Arquivo: notes.txt]"
        assert body["pendingDeletions"] == []
        assert len(body["newVectorMemory"]) == 2

    def test_generate_unknown_chat(self, client):
        response = client.post("/api/chat/generate/missing", json={"message": "Hi"})

        assert response.status_code == 404
        assert response.json()["detail"]["errorType"] == "not_found"

    def test_generate_empty(self, client):
        chat_id = create_chat(client)

        response = client.post(f"/api/chat/generate/{chat_id}", json={"message": " "})

        assert response.status_code == 400

    def test_generate_bad_file(self, client):
        chat_id = create_chat(client)

        response = client.post(
            f"/api/chat/generate/{chat_id}",
            json={"message": "Hi", "files": [{"name": "x", "data": "***"}]},
        )

        assert response.status_code == 400

    @pytest.mark.parametrize(
        "error_type,status",
        [("rate_limit", 429), ("moderation", 422), (None, 502)],
    )
    def test_llm_errors(self, client, mock_llm, error_type, status):
        chat_id = create_chat(client)
        mock_llm.complete = AsyncMock(side_effect=LLMError("nope", error_type))

        response = client.post(f"/api/chat/generate/{chat_id}", json={"message": "Hi"})

        assert response.status_code == status
        detail = response.json()["detail"]
        assert detail["error"] == "nope"
        assert detail["errorType"] == (error_type or "llm")

    def test_edit_delete_and_branch(self, client):
        chat_id = create_chat(client)
        history = client.post(
            f"/api/chat/generate/{chat_id}", json={"message": "Hi"}
        ).json()["history"]
        user_id, reply_id = history[0]["messageid"], history[1]["messageid"]

        edited = client.put(
            f"/api/chat/edit/{chat_id}/{reply_id}", json={"newContent": "Hello."}
        )
        assert edited.status_code == 200

        branched = client.post(f"/api/chat/{chat_id}/branch", json={"messageid": user_id})
        assert branched.status_code == 200
        branch_id = branched.json()["chatToken"]
        branch_history = client.get(f"/api/chat/{branch_id}/history").json()
        assert [m["messageid"] for m in branch_history] == [user_id]

        deleted = client.delete(f"/api/chat/message/{chat_id}/{reply_id}")
        assert deleted.status_code == 200
        again = client.delete(f"/api/chat/message/{chat_id}/{reply_id}")
        assert again.status_code == 404

    def test_delete_memories(self, client):
        chat_id = create_chat(client)
        history = client.post(
            f"/api/chat/generate/{chat_id}", json={"message": "Hi"}
        ).json()["history"]

        response = client.post(
            f"/api/chat/{chat_id}/memories/delete",
            json={"messageids": [history[0]["messageid"]]},
        )

        assert response.status_code == 200
        assert response.json() == {"deleted": 1}


class TestObservabilityRoutes:
    """Tests for /api/trace-events and /api/control."""

    def test_trace_events(self, client):
        chat_id = create_chat(client)
        client.post(f"/api/chat/generate/{chat_id}", json={"message": "Hi"})

        response = client.get(
            "/api/trace-events",
            params={"actor": "game_master", "conversation_id": chat_id},
        )

        assert response.status_code == 200
        event_types = {e["event_type"] for e in response.json()}
        assert {"turn_received", "turn_narrated"} <= event_types

    def test_health(self, client):
        assert client.get("/api/control/health").json() == {"status": "ok"}

    def test_reset(self, client):
        chat_id = create_chat(client)

        assert client.post("/api/control/reset").json() == {"status": "ok"}
        assert client.get(f"/api/chat/{chat_id}/history").status_code == 404
