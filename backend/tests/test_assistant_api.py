import pytest
from unittest.mock import AsyncMock

from app.services.ai_service import ai_service
from app.services.agentic_ai import get_agentic_ai, MartinAgenticAI

@pytest.fixture
def confident(monkeypatch):
    monkeypatch.setattr(ai_service, "score_action_confidence", AsyncMock(return_value={"overall": 0.8}))

@pytest.mark.asyncio
async def test_actions_start_empty(client, auth):
    response = await client.get("/api/v1/assistant/actions", headers=auth["headers"])
    assert response.status_code == 200
    assert response.json()["data"] == []
    assert response.json()["meta"]["count"] == 0

@pytest.mark.asyncio
async def test_execute_task_creation(client, auth, confident):
    response = await client.post("/api/v1/assistant/execute", headers=auth["headers"], json={
        "actionType": "task_creation", "payload": {"title": "Book flights", "priority": "high"}
    })

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["result"] == "Action executed"
    assert data["action"]["action_type"] == "task_creation"
    assert data["action"]["confidence"] == 0.8
    assert "taskId" in data["action"]["payload"]["outcome"]

    tasks = (await client.get("/api/v1/tasks", headers=auth["headers"])).json()["data"]
    assert [(t["title"], t["priority"]) for t in tasks] == [("Book flights", "high")]

    actions = (await client.get("/api/v1/assistant/actions", headers=auth["headers"])).json()["data"]
    assert len(actions) == 1

@pytest.mark.asyncio
async def test_execute_unknown_type_is_only_logged(client, auth, confident):
    response = await client.post("/api/v1/assistant/execute", headers=auth["headers"], json={
        "actionType": "send_flowers", "payload": {"to": "mom"}
    })
    data = response.json()["data"]
    assert data["result"] == "Action logged"
    assert data["action"]["payload"] == {"to": "mom"}

@pytest.mark.asyncio
async def test_actions_newest_first_and_limited(client, auth, confident):
    for i in range(22):
        await client.post("/api/v1/assistant/execute", headers=auth["headers"], json={"actionType": f"note_{i}"})

    actions = (await client.get("/api/v1/assistant/actions", headers=auth["headers"])).json()["data"]
    assert len(actions) == 20
    assert actions[0]["action_type"] == "note_21"

@pytest.mark.asyncio
async def test_memory_search_without_pinecone(client, auth):
    response = await client.post("/api/v1/assistant/memory/search", headers=auth["headers"], json={"query": "flights"})
    assert response.status_code == 200
    assert response.json()["data"] == {"results": []}

@pytest.mark.asyncio
async def test_workflow_endpoint(client, auth, monkeypatch):
    monkeypatch.setattr(ai_service, "generate_chat_response", AsyncMock(return_value="Noted."))

    response = await client.post("/api/v1/assistant/workflow", headers=auth["headers"], json={
        "trigger": "manual_request", "data": {"query": "what's next?"}
    })

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["actions"][0]["type"] == "response_draft"
    assert body["data"]["actions"][0]["payload"]["response"] == "Noted."
    assert body["meta"]["correlationId"]

@pytest.mark.asyncio
async def test_workflow_rejects_unknown_trigger(client, auth):
    response = await client.post("/api/v1/assistant/workflow", headers=auth["headers"], json={"trigger": "bogus"})
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_agent_endpoint(client, auth, monkeypatch):
    async def fake_orchestrate(self, message, context):
        return {"activatedAgents": ["task_manager", "memory_manager"], "actions": ["create_task", "recall_context"]}

    monkeypatch.setattr(MartinAgenticAI, "_orchestrate", fake_orchestrate)

    response = await client.post("/api/v1/assistant/agent", headers=auth["headers"], json={"message": "remind me"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert [(a["agent"], a["action"]) for a in data["actions"]] == [
        ("task_manager", "create_new_task"),
        ("memory_manager", "provide_context"),
    ]
    assert data["actions"][0]["requires_approval"] is True
    assert data["status"]["conversationLength"] >= 1

    reset = await client.delete("/api/v1/assistant/agent", headers=auth["headers"])
    assert reset.status_code == 200
    assert get_agentic_ai(auth["user"]["id"]).get_agent_status()["conversationLength"] == 0

@pytest.mark.asyncio
async def test_connection_tests(client, auth, google_client):
    db = await client.get("/api/v1/test-connection/database", headers=auth["headers"])
    assert db.status_code == 200
    assert db.json()["success"] is True

    ai = await client.get("/api/v1/test-connection/ai", headers=auth["headers"])
    assert ai.status_code == 200
    assert ai.json()["success"] is False

    gmail = await client.get("/api/v1/test-connection/gmail", headers=auth["headers"])
    assert gmail.status_code == 200
    assert gmail.json()["success"] is False
    assert "not configured" in gmail.json()["data"]["message"]

@pytest.mark.asyncio
async def test_connection_tests_with_google(client, auth, google_client):
    await client.put("/api/v1/auth/google/tokens", headers=auth["headers"], json={"accessToken": "tok"})
    google_client.get_profile.return_value = {"emailAddress": "martin@gmail.com"}
    google_client.list_calendars.side_effect = RuntimeError("403")

    gmail = await client.get("/api/v1/test-connection/gmail", headers=auth["headers"])
    assert gmail.json()["data"]["email"] == "martin@gmail.com"

    calendar = await client.get("/api/v1/test-connection/calendar", headers=auth["headers"])
    assert calendar.status_code == 500
    assert calendar.json()["error"]["code"] == "CALENDAR_CONNECTION_FAILED"

def test_agent_coordinators_are_lru_bounded(monkeypatch):
    from collections import OrderedDict
    from app.services import agentic_ai

    monkeypatch.setattr(agentic_ai, "_agents", OrderedDict())
    monkeypatch.setattr(agentic_ai, "MAX_AGENT_SESSIONS", 2)

    first = get_agentic_ai("u1")
    get_agentic_ai("u2")
    assert get_agentic_ai("u1") is first
    get_agentic_ai("u3")

    assert list(agentic_ai._agents) == ["u1", "u3"]
    assert get_agentic_ai("u1") is first
