import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

from sqlalchemy import select

from app.models.email import Email
from app.models.task import Task
from app.models.user import User
from app.models.action import Action
from app.schemas.workflow import WorkflowAction, WorkflowContext
from app.services.workflow_orchestrator import WorkflowOrchestrator, calculate_workflow_confidence

@pytest.fixture
def ai():
    mock = AsyncMock()
    mock.triage_email.return_value = {
        "category": "ACTIONABLE",
        "summary": "Client needs the contract by Friday",
        "priority": "high",
        "confidence": 0.9,
        "actionItems": ["Send contract"],
    }
    mock.generate_tasks_from_email.return_value = [
        {"title": "Send contract", "description": "Signed copy", "priority": "high", "deadline": None}
    ]
    mock.draft_email_reply.return_value = "I'll send it over today."
    mock.generate_chat_response.return_value = "Here is what I found."
    return mock

@pytest.fixture
def memory():
    mock = AsyncMock()
    mock.store_memory.return_value = "u_1_abc"
    mock.search_memories.return_value = [{"id": "m1", "content": "Met Alice last week", "score": 0.8}]
    return mock

@pytest_asyncio.fixture
async def user(db_session):
    user = User(email="flow@example.com", password="x", name="Flow")
    db_session.add(user)
    await db_session.commit()
    return user

@pytest.fixture
def orchestrator(db_session, ai, memory):
    return WorkflowOrchestrator(db_session, ai=ai, memory=memory)


def action(confidence, **kwargs):
    return WorkflowAction(type="task_creation", confidence=confidence, **kwargs)


def test_confidence_is_mean_minus_error_penalty():
    assert calculate_workflow_confidence([], []) == 0.0
    assert calculate_workflow_confidence([action(0.8), action(0.6)], []) == pytest.approx(0.7)
    assert calculate_workflow_confidence([action(0.8), action(0.6)], ["boom"]) == pytest.approx(0.6)
    assert calculate_workflow_confidence([action(0.2)], ["a", "b", "c"]) == 0.0
    assert calculate_workflow_confidence([action(1.0)], []) == 1.0

@pytest.mark.asyncio
async def test_email_workflow(orchestrator, db_session, user, memory):
    db_session.add(Email(id="gm1", user_id=user.id, subject="Contract", sender="client@corp.com", body="Please send"))
    await db_session.commit()

    result = await orchestrator.process_workflow(WorkflowContext(
        user_id=user.id,
        trigger="email_received",
        data={"id": "gm1", "subject": "Contract", "sender": "client@corp.com", "body": "Please send"},
    ))

    types = [a.type for a in result.actions]
    assert types == ["email_triage", "task_creation", "response_draft"]
    assert result.actions[1].requires_approval is True
    assert result.actions[2].payload["persona"] == "professional"
    assert result.errors is None
    assert result.confidence == pytest.approx((0.9 + 0.8 + 0.9) / 3)

    email = await db_session.get(Email, ("gm1", user.id))
    await db_session.refresh(email)
    assert email.category == "actionable"
    assert email.preview == "Client needs the contract by Friday"

    tasks = (await db_session.execute(select(Task).where(Task.user_id == user.id))).scalars().all()
    assert [(t.title, t.priority, t.source) for t in tasks] == [("Send contract", "high", "Contract")]

    stored_types = [call.args[2]["type"] for call in memory.store_memory.call_args_list]
    assert stored_types == ["email", "workflow_execution"]

@pytest.mark.asyncio
async def test_email_task_deadline_feeds_overdue_check(orchestrator, ai, db_session, user):
    ai.generate_tasks_from_email.return_value = [
        {"title": "Send contract", "priority": "high", "deadline": "2025-01-10"}
    ]

    await orchestrator.process_workflow(WorkflowContext(
        user_id=user.id, trigger="email_received", data={"id": "gm3", "subject": "Contract"}
    ))

    task = (await db_session.execute(select(Task).where(Task.user_id == user.id))).scalars().one()
    assert task.due_at == datetime(2025, 1, 10)

    result = await orchestrator.process_workflow(WorkflowContext(user_id=user.id, trigger="scheduled"))
    optimizations = result.actions[0].payload["optimizations"]
    assert [o["taskId"] for o in optimizations] == [task.id]

@pytest.mark.asyncio
async def test_email_workflow_failure_yields_error_action(orchestrator, ai, user):
    ai.triage_email.side_effect = RuntimeError("AI down")

    result = await orchestrator.process_workflow(WorkflowContext(
        user_id=user.id, trigger="email_received", data={"id": "gm2"}
    ))

    assert len(result.actions) == 1
    assert result.actions[0].type == "email_triage"
    assert result.actions[0].confidence == 0.1
    assert result.actions[0].payload["error"] == "AI down"

@pytest.mark.asyncio
async def test_manual_workflow(orchestrator, ai, memory, user):
    result = await orchestrator.process_workflow(WorkflowContext(
        user_id=user.id, trigger="manual_request", data={"query": "What did Alice say?"}
    ))

    assert len(result.actions) == 1
    draft = result.actions[0]
    assert draft.type == "response_draft"
    assert draft.payload["response"] == "Here is what I found."
    assert draft.payload["contextMemories"] == 1
    memory.search_memories.assert_any_call(user.id, "What did Alice say?", 5)

@pytest.mark.asyncio
async def test_calendar_workflow_with_suggestions(orchestrator, user, monkeypatch):
    from app.schemas.google import TimeSlot
    from app.services import workflow_orchestrator as module
    from app.services.google_accounts import GoogleAccountService

    slot = TimeSlot(start=datetime(2025, 1, 13, 9), end=datetime(2025, 1, 13, 10))
    monkeypatch.setattr(GoogleAccountService, "get_client", AsyncMock(return_value=AsyncMock()))
    monkeypatch.setattr(module, "suggest_slots", AsyncMock(return_value=[slot]))

    result = await orchestrator.process_workflow(WorkflowContext(
        user_id=user.id,
        trigger="calendar_event",
        data={"id": "ev1", "title": "Sync", "attendees": ["a@corp.com"], "suggestTimes": True},
    ))

    assert [a.type for a in result.actions] == ["calendar_suggestion"]
    assert len(result.actions[0].payload["suggestions"]) == 1

@pytest.mark.asyncio
async def test_scheduled_workflow(orchestrator, db_session, user):
    old = Email(id="old", user_id=user.id, subject="Old")
    old.created_at = datetime.utcnow() - timedelta(days=45)
    db_session.add_all([
        old,
        Email(id="new", user_id=user.id, subject="New"),
        Task(user_id=user.id, title="Done", status="completed"),
        Task(user_id=user.id, title="Open", status="pending"),
        Task(user_id=user.id, title="Late", status="pending", priority="high", due_at=datetime.utcnow() - timedelta(days=1)),
    ])
    await db_session.commit()

    result = await orchestrator.process_workflow(WorkflowContext(user_id=user.id, trigger="scheduled"))

    assert len(result.actions) == 1
    payload = result.actions[0].payload
    assert payload["title"] == "Scheduled Maintenance"
    assert payload["description"].startswith("Cleaned up 1 old items")
    assert payload["insights"][0]["value"] == pytest.approx(1 / 3)
    assert [o["suggestion"] for o in payload["optimizations"]] == ["Consider prioritizing task: Late"]

    remaining = (await db_session.execute(select(Email.id).where(Email.user_id == user.id))).scalars().all()
    assert remaining == ["new"]

@pytest.mark.asyncio
async def test_unknown_trigger(orchestrator, user):
    result = await orchestrator.process_workflow(WorkflowContext(user_id=user.id, trigger="mystery"))
    assert result.actions == []
    assert result.confidence == 0.0
    assert result.execution_time >= 0

@pytest.mark.asyncio
async def test_execute_actions_skips_unapproved(orchestrator, db_session, memory, user):
    actions = [
        action(0.8, payload={"title": "Needs approval"}, requires_approval=True),
        action(0.9, payload={"title": "Auto"}),
        WorkflowAction(type="calendar_suggestion", payload={"suggestions": []}, confidence=0.85),
        WorkflowAction(type="memory_storage", payload={"content": "likes mornings"}, confidence=0.7),
    ]

    executed = await orchestrator.execute_actions(user.id, actions)

    assert executed == 3
    titles = (await db_session.execute(select(Task.title).where(Task.user_id == user.id))).scalars().all()
    assert titles == ["Auto"]
    logged = (await db_session.execute(select(Action.action_type))).scalars().all()
    assert logged == ["calendar_suggestion"]
    memory.store_memory.assert_called_once_with(user.id, "likes mornings", None)

    executed = await orchestrator.execute_actions(user.id, actions[:1], approved_only=False)
    assert executed == 1
