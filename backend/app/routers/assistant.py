import uuid
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.responses import envelope
from app.models.action import Action
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.assistant import ActionRecord, ExecuteActionRequest, MemorySearchRequest, WorkflowRequest, AgentRequest
from app.schemas.workflow import WorkflowAction, WorkflowContext
from app.services.agentic_ai import get_agentic_ai
from app.services.ai_service import ai_service
from app.services.memory_service import memory_service
from app.services.workflow_orchestrator import WorkflowOrchestrator
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/assistant", tags=["assistant"])

RECENT_ACTIONS = 20
EXECUTABLE_TYPES = {"task_creation", "memory_storage"}


@router.get("/actions")
async def get_actions(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    result = await db.execute(
        select(Action)
        .where(Action.user_id == current_user.id)
        .order_by(Action.executed_at.desc(), Action.id.desc())
        .limit(RECENT_ACTIONS)
    )
    actions = [ActionRecord.model_validate(a).model_dump(mode="json") for a in result.scalars().all()]
    return envelope(actions, count=len(actions))


@router.post("/execute")
async def execute_action(
    data: ExecuteActionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    scores = await ai_service.score_action_confidence({"type": data.action_type, "payload": data.payload})
    confidence = float(scores.get("overall", 0.5))

    outcome = {}
    if data.action_type in EXECUTABLE_TYPES:
        orchestrator = WorkflowOrchestrator(db)
        outcome = await orchestrator.execute_action(
            current_user.id,
            WorkflowAction(type=data.action_type, payload=data.payload, confidence=confidence)
        )
        result = "Action executed"
    else:
        logger.info(f"Action type {data.action_type} recorded without execution")
        result = "Action logged"

    action = Action(
        user_id=current_user.id,
        action_type=data.action_type,
        payload={**data.payload, **({"outcome": outcome} if outcome else {})},
        confidence=confidence,
    )
    db.add(action)
    await db.commit()
    await db.refresh(action)

    return envelope({"result": result, "action": ActionRecord.model_validate(action).model_dump(mode="json")})


@router.post("/memory/search")
async def search_memory(data: MemorySearchRequest, current_user: User = Depends(get_current_user)):
    results = await memory_service.search_memories(current_user.id, data.query, data.top_k)
    return envelope({"results": results}, count=len(results))


@router.post("/workflow")
async def run_workflow(
    data: WorkflowRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    context = WorkflowContext(
        user_id=current_user.id,
        trigger=data.trigger,
        data=data.data,
        correlation_id=uuid.uuid4().hex,
    )
    result = await WorkflowOrchestrator(db).process_workflow(context)
    return envelope(result.model_dump(mode="json"), correlationId=context.correlation_id)


@router.post("/agent")
async def run_agent(
    data: AgentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    agent = get_agentic_ai(current_user.id)
    actions = await agent.process_user_request(db, data.message, current_user.id, data.context)
    return envelope({
        "actions": [a.model_dump(mode="json") for a in actions],
        "status": agent.get_agent_status(),
    }, count=len(actions))


@router.delete("/agent")
async def reset_agent(current_user: User = Depends(get_current_user)):
    get_agentic_ai(current_user.id).reset_conversation()
    return envelope({"message": "Agent conversation reset"})
