import time
from datetime import datetime, timedelta
from typing import List, Dict, Any, Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models.action import Action
from app.models.email import Email
from app.models.task import Task
from app.schemas.workflow import WorkflowContext, WorkflowAction, WorkflowResult
from app.services.ai_service import AIService, ai_service
from app.services.google_accounts import GoogleAccountService
from app.services.inbox_service import parse_deadline
from app.services.memory_service import MemoryService, memory_service
from app.services.scheduling import suggest_slots
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

ERROR_PENALTY = 0.1
VALID_TASK_PRIORITIES = {"low", "medium", "high", "urgent"}


def calculate_workflow_confidence(actions: List[WorkflowAction], errors: List[str]) -> float:
    if not actions:
        return 0.0
    mean = sum(a.confidence for a in actions) / len(actions)
    return max(0.0, min(1.0, mean - ERROR_PENALTY * len(errors)))


def _confidence(value: Any, default: float = 0.5) -> float:
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return default


def _task_priority(value: Any) -> str:
    value = str(value or "medium").lower()
    return value if value in VALID_TASK_PRIORITIES else "medium"


class WorkflowOrchestrator:
    """Dispatches a workflow trigger to a fixed sequence of AI, memory and database steps."""

    def __init__(self, db: AsyncSession, ai: Optional[AIService] = None, memory: Optional[MemoryService] = None):
        self.db = db
        self.ai = ai or ai_service
        self.memory = memory or memory_service

    async def process_workflow(self, context: WorkflowContext) -> WorkflowResult:
        started = time.perf_counter()
        actions: List[WorkflowAction] = []
        errors: List[str] = []

        handlers = {
            "email_received": self._handle_email_workflow,
            "calendar_event": self._handle_calendar_workflow,
            "manual_request": self._handle_manual_workflow,
            "scheduled": self._handle_scheduled_workflow,
        }

        try:
            logger.info(f"Processing workflow: {context.trigger} (correlation_id={context.correlation_id})")
            handler = handlers.get(context.trigger)
            if handler is None:
                logger.warning(f"Unknown workflow trigger: {context.trigger}")
            else:
                actions.extend(await handler(context))

            await self._store_workflow_results(context, actions)
        except Exception as e:
            logger.exception(f"Workflow orchestration error: {e}")
            errors.append(str(e))

        return WorkflowResult(
            actions=actions,
            confidence=calculate_workflow_confidence(actions, errors),
            execution_time=(time.perf_counter() - started) * 1000,
            errors=errors or None,
        )

    async def _handle_email_workflow(self, context: WorkflowContext) -> List[WorkflowAction]:
        actions: List[WorkflowAction] = []
        email = context.data
        email_id = email.get("id")

        try:
            triage = await self.ai.triage_email({
                "subject": email.get("subject", ""),
                "sender": email.get("sender", ""),
                "body": email.get("body", ""),
            })
            category = str(triage.get("category", "ACTIONABLE"))
            summary = triage.get("summary", "")

            actions.append(WorkflowAction(
                type="email_triage",
                payload={"emailId": email_id, "category": category, "summary": summary},
                confidence=_confidence(triage.get("confidence")),
                priority="high",
            ))

            tasks = await self.ai.generate_tasks_from_email({
                "subject": email.get("subject", ""),
                "sender": email.get("sender", ""),
                "body": email.get("body", ""),
                "category": category,
            })
            for task in tasks:
                actions.append(WorkflowAction(
                    type="task_creation",
                    payload={
                        "title": task.get("title"),
                        "description": task.get("description"),
                        "priority": task.get("priority"),
                        "deadline": task.get("deadline"),
                        "source": email.get("subject"),
                    },
                    confidence=0.8,
                    priority="high" if task.get("priority") == "high" else "medium",
                    requires_approval=True,
                ))

            if category.upper() == "ACTIONABLE" and triage.get("priority") == "high":
                draft = await self.ai.draft_email_reply({
                    "subject": email.get("subject", ""),
                    "sender": email.get("sender", ""),
                    "body": email.get("body", ""),
                    "category": category,
                }, "professional")
                actions.append(WorkflowAction(
                    type="response_draft",
                    payload={"emailId": email_id, "draft": draft, "persona": "professional"},
                    confidence=0.9,
                    priority="medium",
                    requires_approval=True,
                ))

            await self.memory.store_memory(context.user_id, f"Email: {email.get('subject', '')} - {summary}", {
                "type": "email",
                "context": {
                    "emailId": email_id,
                    "category": category,
                    "sender": email.get("sender"),
                    "receivedAt": email.get("receivedAt"),
                },
            })

            if email_id:
                await self.db.execute(
                    update(Email)
                    .where(Email.id == email_id, Email.user_id == context.user_id)
                    .values(category=category.lower(), preview=summary)
                )

            for task in tasks:
                self.db.add(Task(
                    user_id=context.user_id,
                    title=task["title"],
                    description=task.get("description") or "",
                    status="pending",
                    priority=_task_priority(task.get("priority")),
                    due_at=parse_deadline(task.get("deadline")),
                    source=email.get("subject"),
                ))
            await self.db.commit()

        except Exception as e:
            logger.error(f"Email workflow error: {e}")
            await self.db.rollback()
            actions.append(WorkflowAction(
                type="email_triage",
                payload={"emailId": email_id, "error": str(e)},
                confidence=0.1,
                priority="low",
            ))

        return actions

    async def _handle_calendar_workflow(self, context: WorkflowContext) -> List[WorkflowAction]:
        actions: List[WorkflowAction] = []
        event = context.data

        try:
            similar = await self.memory.search_memories(context.user_id, f"meeting {event.get('title', '')}", 3)
            if similar:
                logger.info(f"Found {len(similar)} similar meetings for '{event.get('title')}'")

            if event.get("suggestTimes"):
                client = await GoogleAccountService(self.db, context.user_id).get_client()
                slots = await suggest_slots(client, int(event.get("duration") or 60))
                actions.append(WorkflowAction(
                    type="calendar_suggestion",
                    payload={
                        "eventId": event.get("id"),
                        "suggestions": [s.model_dump(mode="json") for s in slots],
                        "context": "Meeting time optimization",
                    },
                    confidence=0.85,
                    priority="medium",
                ))

            attendees = event.get("attendees") or []
            await self.memory.store_memory(context.user_id, f"Meeting: {event.get('title', '')} with {', '.join(attendees)}", {
                "type": "meeting",
                "context": {
                    "eventId": event.get("id"),
                    "attendees": attendees,
                    "startTime": event.get("start"),
                    "location": event.get("location"),
                },
            })
        except Exception as e:
            logger.error(f"Calendar workflow error: {e}")

        return actions

    async def _handle_manual_workflow(self, context: WorkflowContext) -> List[WorkflowAction]:
        actions: List[WorkflowAction] = []
        query = context.data.get("query", "")

        try:
            memories = await self.memory.search_memories(context.user_id, query, 5)
            response = await self._generate_contextual_response(query, memories)

            actions.append(WorkflowAction(
                type="response_draft",
                payload={"query": query, "response": response, "contextMemories": len(memories)},
                confidence=0.75,
                priority="medium",
            ))

            await self.memory.store_memory(context.user_id, f"User asked: {query}", {
                "type": "interaction",
                "context": {"response": response, "memoryCount": len(memories)},
            })
        except Exception as e:
            logger.error(f"Manual workflow error: {e}")

        return actions

    async def _handle_scheduled_workflow(self, context: WorkflowContext) -> List[WorkflowAction]:
        actions: List[WorkflowAction] = []

        try:
            cutoff = datetime.utcnow() - timedelta(days=settings.RETENTION_DAYS)
            result = await self.db.execute(
                delete(Email).where(Email.user_id == context.user_id, Email.created_at < cutoff)
            )
            await self.db.commit()
            removed = result.rowcount or 0

            insights = await self._generate_productivity_insights(context.user_id)
            optimizations = await self._optimize_task_scheduling(context.user_id)

            actions.append(WorkflowAction(
                type="task_creation",
                payload={
                    "title": "Scheduled Maintenance",
                    "description": f"Cleaned up {removed} old items. Generated {len(insights)} insights.",
                    "insights": insights,
                    "optimizations": optimizations,
                },
                confidence=0.95,
                priority="low",
            ))
        except Exception as e:
            logger.error(f"Scheduled workflow error: {e}")
            await self.db.rollback()

        return actions

    async def _store_workflow_results(self, context: WorkflowContext, actions: List[WorkflowAction]):
        mean = sum(a.confidence for a in actions) / len(actions) if actions else 0.0
        await self.memory.store_memory(
            context.user_id,
            f"Workflow executed: {context.trigger} with {len(actions)} actions",
            {
                "type": "workflow_execution",
                "context": {"trigger": context.trigger, "actionCount": len(actions), "totalConfidence": mean},
            },
        )

    async def _generate_contextual_response(self, query: str, memories: List[Dict[str, Any]]) -> str:
        context = [
            {"role": "assistant", "content": f"Earlier note: {m.get('content')}"}
            for m in memories if m.get("content")
        ]
        return await self.ai.generate_chat_response(query, context)

    async def _generate_productivity_insights(self, user_id: str) -> List[Dict[str, Any]]:
        since = datetime.utcnow() - timedelta(days=7)
        result = await self.db.execute(
            select(Task.status).where(Task.user_id == user_id, Task.created_at > since)
        )
        statuses = result.scalars().all()
        total = len(statuses)
        completed = sum(1 for s in statuses if s == "completed")
        rate = completed / total if total else 0.0
        return [{
            "type": "task_completion_rate",
            "value": rate,
            "insight": f"Task completion rate last 7 days: {round(rate * 100)}%",
        }]

    async def _optimize_task_scheduling(self, user_id: str) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Task).where(
                Task.user_id == user_id,
                Task.status == "pending",
                Task.priority == "high",
                Task.due_at < datetime.utcnow(),
            )
        )
        return [
            {
                "taskId": task.id,
                "optimization": "overdue_high_priority_task",
                "suggestion": f"Consider prioritizing task: {task.title}",
            }
            for task in result.scalars().all()
        ]

    async def execute_actions(self, user_id: str, actions: List[WorkflowAction], approved_only: bool = True) -> int:
        executed = 0
        for action in actions:
            if approved_only and action.requires_approval:
                continue
            try:
                await self.execute_action(user_id, action)
                executed += 1
                logger.info(f"Executed action: {action.type} (confidence={action.confidence:.2f})")
            except Exception as e:
                logger.error(f"Action execution failed: {action.type}: {e}")
                await self.db.rollback()
        return executed

    async def execute_action(self, user_id: str, action: WorkflowAction) -> Dict[str, Any]:
        payload = action.payload
        if action.type == "task_creation":
            task = Task(
                user_id=user_id,
                title=payload.get("title") or "Untitled task",
                description=payload.get("description") or "",
                status="pending",
                priority=_task_priority(payload.get("priority")),
                due_at=parse_deadline(payload.get("deadline")),
                source=payload.get("source") or "workflow",
            )
            self.db.add(task)
            await self.db.commit()
            await self.db.refresh(task)
            return {"taskId": task.id}

        if action.type == "calendar_suggestion":
            self.db.add(Action(
                user_id=user_id,
                action_type=action.type,
                payload=payload,
                confidence=action.confidence,
            ))
            await self.db.commit()
            return {"logged": True}

        if action.type == "memory_storage":
            memory_id = await self.memory.store_memory(user_id, payload.get("content", ""), payload.get("metadata"))
            return {"memoryId": memory_id}

        if action.type != "email_triage":
            logger.warning(f"Unknown action type: {action.type}")
        return {}
