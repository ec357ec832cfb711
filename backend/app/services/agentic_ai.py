import json
from collections import OrderedDict
from typing import List, Dict, Any, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.models.chat import ChatMessage
from app.models.email import Email
from app.providers import ProviderFactory
from app.schemas.workflow import AgentMessage, AgenticAction
from app.services.ai_service import parse_json
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

HISTORY_LIMIT = 100
MAX_AGENT_SESSIONS = 1000
AGENTS = ("email_analyzer", "task_manager", "calendar_coordinator", "memory_manager", "user_interface")

ORCHESTRATOR_PROMPT = """You are the Martin++ AI Orchestrator. Analyze this user request and coordinate appropriate agents.

User Message: "{message}"
Context: {context}

Available Agents:
- email_analyzer: Handles email-related tasks (triage_emails)
- task_manager: Manages tasks, todos, and productivity items (create_task)
- calendar_coordinator: Handles scheduling and time management (schedule_meeting)
- memory_manager: Deals with user history, preferences, and knowledge (recall_context)
- user_interface: Handles general chat and conversation (respond_to_user)

Respond with JSON:
{{
  "activatedAgents": ["agent1", "agent2"],
  "primaryAgent": "most_relevant_agent",
  "actions": ["specific_action1", "specific_action2"],
  "priority": "low|medium|high",
  "reasoning": "brief explanation"
}}"""

FALLBACK_ORCHESTRATION = {
    "activatedAgents": ["user_interface"],
    "primaryAgent": "user_interface",
    "actions": ["respond_to_user"],
    "priority": "medium",
}


class MartinAgenticAI:
    """
    Multi-agent coordinator.

    An orchestrator prompt picks which agents to activate; each agent turns
    the chosen actions into AgenticAction proposals. The conversation between
    agents is kept in memory for status reporting.
    """

    def __init__(self):
        self.conversation_history: List[AgentMessage] = []
        self.active_agents = {"orchestrator"}

    def _remember(self, role: str, content: str, metadata: Optional[Dict[str, Any]] = None):
        self.conversation_history.append(AgentMessage(role=role, content=content, metadata=metadata))
        if len(self.conversation_history) > HISTORY_LIMIT:
            self.conversation_history = self.conversation_history[-HISTORY_LIMIT:]

    async def process_user_request(self, db: AsyncSession, message: str, user_id: str,
                                   context: Optional[Dict[str, Any]] = None) -> List[AgenticAction]:
        self._remember("user_interface", message, {"userId": user_id, "context": context})

        orchestration = await self._orchestrate(message, context)
        actions: List[AgenticAction] = []
        for agent in orchestration["activatedAgents"]:
            try:
                actions.extend(await self._activate_agent(db, agent, orchestration["actions"], user_id, message))
            except Exception as e:
                logger.warning(f"Agent {agent} failed: {e}")
        return actions

    async def _orchestrate(self, message: str, context: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        prompt = ORCHESTRATOR_PROMPT.format(message=message, context=json.dumps(context or {}, default=str))
        try:
            provider = ProviderFactory.get_provider("openai")
            response = await provider.generate(
                [{"role": "user", "content": prompt}],
                {"temperature": 0.3, "max_tokens": 400, "json_mode": True}
            )
            result = parse_json(response.content, None)
            if not isinstance(result, dict):
                raise ValueError("Orchestrator reply is not a JSON object")

            agents = [a for a in result.get("activatedAgents") or [] if a in AGENTS]
            if not agents:
                raise ValueError("Orchestrator activated no known agents")
            result["activatedAgents"] = agents
            result["actions"] = [str(a) for a in result.get("actions") or []]
        except Exception as e:
            logger.warning(f"Orchestrator fallback: {e}")
            return dict(FALLBACK_ORCHESTRATION)

        self.active_agents.update(result["activatedAgents"])
        self._remember(
            "orchestrator",
            f"Activated agents: {', '.join(result['activatedAgents'])} for action: {', '.join(result['actions'])}",
            result,
        )
        return result

    async def _activate_agent(self, db: AsyncSession, agent: str, actions: List[str],
                              user_id: str, message: str) -> List[AgenticAction]:
        if agent == "email_analyzer":
            return await self._email_analyzer(db, actions, user_id)
        if agent == "task_manager":
            return self._task_manager(actions)
        if agent == "calendar_coordinator":
            return self._calendar_coordinator(actions)
        if agent == "memory_manager":
            return await self._memory_manager(db, actions, user_id)
        if agent == "user_interface":
            return await self._user_interface(actions, message)
        return []

    async def _email_analyzer(self, db: AsyncSession, actions: List[str], user_id: str) -> List[AgenticAction]:
        results = []
        if "triage_emails" in actions:
            rows = await db.execute(
                select(Email).where(Email.user_id == user_id, or_(Email.category.is_(None), Email.category == ""))
            )
            for email in rows.scalars().all():
                results.append(AgenticAction(
                    agent="email_analyzer",
                    action="triage_email",
                    payload={"emailId": email.id, "subject": email.subject, "body": email.body},
                    confidence=0.95,
                ))
        self._remember("email_analyzer", f"Analyzed {len(results)} emails for triaging")
        return results

    def _task_manager(self, actions: List[str]) -> List[AgenticAction]:
        results = []
        if "create_task" in actions:
            results.append(AgenticAction(
                agent="task_manager",
                action="create_new_task",
                payload={"title": "Task from agentic AI", "priority": "medium"},
                confidence=0.85,
                requires_approval=True,
            ))
        self._remember("task_manager", f"Generated {len(results)} task actions")
        return results

    def _calendar_coordinator(self, actions: List[str]) -> List[AgenticAction]:
        results = []
        if "schedule_meeting" in actions:
            results.append(AgenticAction(
                agent="calendar_coordinator",
                action="suggest_time_slots",
                payload={"duration": 60, "preferences": {}},
                confidence=0.9,
            ))
        self._remember("calendar_coordinator", f"Coordinated {len(results)} calendar actions")
        return results

    async def _memory_manager(self, db: AsyncSession, actions: List[str], user_id: str) -> List[AgenticAction]:
        if "recall_context" not in actions:
            return []
        rows = await db.execute(
            select(ChatMessage.content)
            .where(ChatMessage.user_id == user_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(5)
        )
        memories = [{"content": content} for content in rows.scalars().all()]
        return [AgenticAction(
            agent="memory_manager",
            action="provide_context",
            payload={"memories": memories},
            confidence=0.95,
        )]

    async def _user_interface(self, actions: List[str], message: str) -> List[AgenticAction]:
        if "respond_to_user" not in actions:
            return []

        openai_response = await self._generate_with("openai", message)
        gemini_response = await self._generate_with("gemini", message) if settings.GEMINI_API_KEY else ""

        # Ensemble: the more detailed answer wins
        final = openai_response if len(openai_response) >= len(gemini_response) else gemini_response
        self._remember("user_interface", "Generated response using AI ensemble")

        return [AgenticAction(
            agent="user_interface",
            action="display_response",
            payload={"message": final},
            confidence=0.92,
        )]

    async def _generate_with(self, provider_name: str, message: str) -> str:
        try:
            provider = ProviderFactory.get_provider(provider_name)
            response = await provider.generate(
                [{"role": "user", "content": message}],
                {"temperature": 0.7, "max_tokens": 300}
            )
            return response.content or "I understand. How can I help?"
        except Exception as e:
            logger.error(f"{provider_name} generation error: {e}")
            return ""

    def get_agent_status(self) -> Dict[str, Any]:
        return {
            "activeAgents": sorted(self.active_agents),
            "conversationLength": len(self.conversation_history),
            "recentMessages": [m.model_dump() for m in self.conversation_history[-3:]],
        }

    def reset_conversation(self):
        self.conversation_history = []
        self.active_agents = {"orchestrator"}


_agents: "OrderedDict[str, MartinAgenticAI]" = OrderedDict()


def get_agentic_ai(user_id: str) -> MartinAgenticAI:
    """One agent coordinator per user so conversation history never crosses accounts.

    Coordinators are kept in LRU order; the least recently used one is dropped past MAX_AGENT_SESSIONS.
    """
    agent = _agents.pop(user_id, None) or MartinAgenticAI()
    _agents[user_id] = agent
    while len(_agents) > MAX_AGENT_SESSIONS:
        _agents.popitem(last=False)
    return agent
