import json
import re
from typing import List, Dict, Any, Optional, AsyncIterator

from app.providers import ProviderFactory
from app.utils.logger import get_logger

logger = get_logger(__name__)

PERSONAS = {
    "professional": "professional: clear, courteous and businesslike",
    "formal": "formal: polite, precise and reserved, no contractions",
    "casual": "casual: friendly and relaxed, like writing to a colleague you know well",
    "concise": "concise: as short as possible while still answering every point",
    "adaptive": "adaptive: mirror the tone and formality of the original email",
}

FALLBACK_TRIAGE = {
    "category": "ACTIONABLE",
    "summary": "This email may require attention. Please review manually.",
    "actionItems": [],
    "priority": "medium",
    "responseTime": "This Week",
    "confidence": 0.5,
}
FALLBACK_DRAFT = "Thank you for your email. I will review this and respond shortly."
FALLBACK_CHAT = "I'm having trouble understanding that right now. Could you try asking differently?"
EMPTY_CHAT = "I understand. How can I help you today?"
FALLBACK_CONFIDENCE = {"overall": 0.5}

TRIAGE_PROMPT = """You are an AI assistant helping to triage emails. Analyze this email and classify it:

Email Subject: {subject}
Email From: {sender}
Email Body: {body}

Classify this email into one of these categories:
- IMPORTANT: Urgent matters requiring immediate attention
- ACTIONABLE: Tasks or requests that need action
- FYI: Informational emails that don't require action

Also provide:
1. A brief summary (2-3 sentences)
2. Action items if any (extract specific tasks, requests, or commitments)
3. Suggested response priority (high/medium/low)
4. Suggested response time if applicable

Format your response as JSON:
{{
  "category": "IMPORTANT|ACTIONABLE|FYI",
  "summary": "brief summary here",
  "actionItems": ["task 1", "task 2"],
  "priority": "high|medium|low",
  "responseTime": "ASAP|Today|This Week|When Possible|Never",
  "confidence": 0.95
}}"""

DRAFT_PROMPT = """You are writing a reply to this email. Use this tone: {tone}.

Original Email:
Subject: {subject}
From: {sender}
Body: {body}

Context: This email was classified as {category}. It may require: {action_items}.

Draft a concise reply that:
1. Acknowledges the email appropriately
2. Addresses the main points or requests
3. Takes action on any commitments

Keep the reply under 200 words. Reply with the email body only."""

TASKS_PROMPT = """Analyze this email and extract any tasks, commitments, or follow-ups needed:

Email Subject: {subject}
Email From: {sender}
Email Body: {body}
Email Category: {category}

For each task, determine a concise title, a description, a priority (high/medium/low)
and a deadline if one is mentioned.

Format as a JSON array:
[
  {{"title": "Task title", "description": "Detailed description", "priority": "high|medium|low", "deadline": "YYYY-MM-DD HH:MM or null"}}
]

If no specific tasks are found, return an empty array."""

CHAT_SYSTEM_PROMPT = (
    "You are Martin++, an intelligent personal assistant. Be helpful, concise, and proactive. "
    "If the user asks about tasks, emails or their calendar, give specific, practical help."
)

TIMES_PROMPT = """A user wants to schedule a {duration}-minute meeting.
Consider these preferences: {preferences}

Typical work hours: 9 AM - 5 PM, Monday to Friday.
Suggest 5 optimal time slots for the current week.

Format as a JSON array:
[
  {{"start": "2025-01-15T10:00:00Z", "end": "2025-01-15T11:00:00Z", "reason": "Early morning slot"}}
]"""

CONFIDENCE_PROMPT = """Analyze this proposed action and provide confidence scoring:

Action: {action}

Rate on a scale of 0-1 how confident you are that:
1. This action is appropriate for the situation
2. This action will achieve the desired outcome
3. This action is ethical and safe

Format as JSON:
{{"appropriateness": 0.95, "effectiveness": 0.87, "ethics": 0.98, "overall": 0.90}}"""


def persona_tone(persona: Optional[str]) -> str:
    if not persona:
        return PERSONAS["professional"]
    return PERSONAS.get(persona.lower(), persona)


def parse_json(text: Optional[str], default: Any) -> Any:
    """Parse a model reply as JSON, tolerating code fences and surrounding prose."""
    if not text:
        return default
    cleaned = text.strip()
    fenced = re.search(r"```(?:json)?\s*(.*?)```", cleaned, re.DOTALL)
    if fenced:
        cleaned = fenced.group(1).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    # try whichever bracket opens first so a top-level array is not read as its first object
    patterns = [r"\{.*\}", r"\[.*\]"]
    brace, bracket = cleaned.find("{"), cleaned.find("[")
    if bracket != -1 and (brace == -1 or bracket < brace):
        patterns.reverse()
    for pattern in patterns:
        match = re.search(pattern, cleaned, re.DOTALL)
        if match:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                continue
    return default


class AIService:
    def __init__(self, provider_name: str = "openai"):
        self.provider_name = provider_name

    @property
    def provider(self):
        return ProviderFactory.get_provider(self.provider_name)

    async def _complete(self, prompt: str, temperature: float, max_tokens: int,
                        system: Optional[str] = None, json_mode: bool = False) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = await self.provider.generate(
            messages,
            {"temperature": temperature, "max_tokens": max_tokens, "json_mode": json_mode}
        )
        return response.content

    async def triage_email(self, email: Dict[str, Any]) -> Dict[str, Any]:
        prompt = TRIAGE_PROMPT.format(
            subject=email.get("subject", ""),
            sender=email.get("sender", ""),
            body=email.get("body", ""),
        )
        try:
            content = await self._complete(prompt, 0.3, 500, json_mode=True)
        except Exception as e:
            logger.error(f"Email triage AI error: {e}")
            return dict(FALLBACK_TRIAGE)

        result = parse_json(content, None)
        if not isinstance(result, dict) or not result.get("category"):
            logger.warning("Email triage returned unparseable output, using fallback")
            return dict(FALLBACK_TRIAGE)

        result.setdefault("actionItems", [])
        result.setdefault("priority", "medium")
        result.setdefault("confidence", 0.5)
        return result

    async def draft_email_reply(self, email: Dict[str, Any], persona: str = "professional") -> str:
        action_items = email.get("actionItems") or []
        prompt = DRAFT_PROMPT.format(
            tone=persona_tone(persona),
            subject=email.get("subject", ""),
            sender=email.get("sender", ""),
            body=email.get("body", ""),
            category=email.get("category") or "unknown",
            action_items=", ".join(action_items) if action_items else "no specific actions",
        )
        try:
            content = await self._complete(prompt, 0.7, 300)
        except Exception as e:
            logger.error(f"Email draft AI error: {e}")
            return FALLBACK_DRAFT
        return content.strip() or FALLBACK_DRAFT

    async def generate_tasks_from_email(self, email: Dict[str, Any]) -> List[Dict[str, Any]]:
        prompt = TASKS_PROMPT.format(
            subject=email.get("subject", ""),
            sender=email.get("sender", ""),
            body=email.get("body", ""),
            category=email.get("category") or "unknown",
        )
        try:
            content = await self._complete(prompt, 0.3, 400)
        except Exception as e:
            logger.error(f"Task generation AI error: {e}")
            return []

        tasks = parse_json(content, [])
        if isinstance(tasks, dict):
            # json mode style replies wrap the list
            tasks = tasks.get("tasks", [])
        if not isinstance(tasks, list):
            return []
        return [t for t in tasks if isinstance(t, dict) and t.get("title")]

    @staticmethod
    def _chat_messages(message: str, context: List[Dict[str, Any]],
                       previous_response: Optional[str] = None) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": CHAT_SYSTEM_PROMPT}]
        for turn in context:
            messages.append({"role": turn.get("role", "user"), "content": turn.get("content", "")})
        if previous_response:
            messages.append({"role": "assistant", "content": previous_response})
        messages.append({"role": "user", "content": message})
        return messages

    async def generate_chat_response(self, message: str, context: Optional[List[Dict[str, Any]]] = None) -> str:
        try:
            response = await self.provider.generate(
                self._chat_messages(message, context or []),
                {"temperature": 0.7, "max_tokens": 300}
            )
        except Exception as e:
            logger.error(f"Chat AI error: {e}")
            return FALLBACK_CHAT
        return response.content.strip() or EMPTY_CHAT

    async def stream_chat_response(self, message: str, context: Optional[List[Dict[str, Any]]] = None,
                                   previous_response: Optional[str] = None) -> AsyncIterator[str]:
        """Yield text deltas; a failure before or during the stream yields the apology instead."""
        messages = self._chat_messages(message, context or [], previous_response)
        emitted = False
        try:
            stream = await self.provider.stream_generate(messages, {"temperature": 0.7, "max_tokens": 1000})
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    emitted = True
                    yield delta
        except Exception as e:
            logger.error(f"Streaming chat AI error: {e}")
            yield FALLBACK_CHAT if not emitted else f"\n\n{FALLBACK_CHAT}"

    async def suggest_optimal_times(self, duration: int, preferences: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        prompt = TIMES_PROMPT.format(duration=duration, preferences=json.dumps(preferences or {}))
        try:
            content = await self._complete(prompt, 0.3, 400)
        except Exception as e:
            logger.error(f"Time suggestion AI error: {e}")
            return []
        suggestions = parse_json(content, [])
        return suggestions if isinstance(suggestions, list) else []

    async def score_action_confidence(self, action: Dict[str, Any]) -> Dict[str, Any]:
        prompt = CONFIDENCE_PROMPT.format(action=json.dumps(action, default=str))
        try:
            content = await self._complete(prompt, 0.1, 150, json_mode=True)
        except Exception as e:
            logger.error(f"Confidence scoring AI error: {e}")
            return dict(FALLBACK_CONFIDENCE)

        scores = parse_json(content, None)
        if not isinstance(scores, dict):
            return dict(FALLBACK_CONFIDENCE)
        try:
            scores["overall"] = min(1.0, max(0.0, float(scores.get("overall", 0.5))))
        except (TypeError, ValueError):
            scores["overall"] = 0.5
        return scores


ai_service = AIService()
