from datetime import datetime
from typing import List, Dict, Any, Optional

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError
from app.models.draft import Draft
from app.models.email import Email
from app.models.task import Task
from app.schemas.google import EmailMessage
from app.services.ai_service import AIService, ai_service
from app.services.google_accounts import GoogleAccountService
from app.utils.logger import get_logger

logger = get_logger(__name__)

MAX_INBOX_RESULTS = 50
TRIAGE_BATCH = 50
VALID_TASK_PRIORITIES = {"low", "medium", "high", "urgent"}


def gmail_filters(category: Optional[str]) -> Dict[str, Any]:
    """Map an inbox category to Gmail list parameters."""
    if category == "important":
        return {"label_ids": ["IMPORTANT", "INBOX"]}
    if category == "actionable":
        return {"q": "is:actionable"}
    if category == "fyi":
        return {"q": "label:fyi"}
    return {"label_ids": ["INBOX"]}


def parse_deadline(value: Any) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class InboxService:
    def __init__(self, db: AsyncSession, user_id: str, ai: Optional[AIService] = None):
        self.db = db
        self.user_id = user_id
        self.ai = ai or ai_service

    async def get_inbox(self, category: Optional[str] = None, limit: int = 20) -> List[EmailMessage]:
        client = await GoogleAccountService(self.db, self.user_id).get_client()
        max_results = max(1, min(limit, MAX_INBOX_RESULTS))
        emails = await client.list_messages(max_results=max_results, **gmail_filters(category))
        await self.store_emails(emails)
        return emails

    async def store_emails(self, emails: List[EmailMessage]) -> int:
        stored = 0
        for email in emails:
            try:
                existing = await self.db.get(Email, (email.id, self.user_id))
                if existing:
                    continue
                self.db.add(Email(
                    id=email.id,
                    user_id=self.user_id,
                    thread_id=email.thread_id,
                    subject=email.subject,
                    sender=email.sender,
                    sender_email=email.sender_email,
                    body=email.body,
                    preview=email.snippet,
                    received_at=email.received_at,
                    is_read=email.is_read,
                    has_attachments=email.has_attachments,
                ))
                await self.db.commit()
                stored += 1
            except Exception as e:
                logger.warning(f"Failed to store email {email.id}: {e}")
                await self.db.rollback()
        return stored

    async def get_email(self, email_id: str) -> Email:
        email = await self.db.get(Email, (email_id, self.user_id))
        if not email:
            raise AppError(404, "EMAIL_NOT_FOUND", "Email not found")
        return email

    async def triage(self) -> Dict[str, Any]:
        result = await self.db.execute(
            select(Email)
            .where(Email.user_id == self.user_id, or_(Email.category.is_(None), Email.category == ""))
            .order_by(Email.received_at.desc())
            .limit(TRIAGE_BATCH)
        )
        # Plain values survive the rollback that expires loaded rows
        pending = [
            (e.id, {"subject": e.subject or "", "sender": e.sender or "", "body": e.body or ""})
            for e in result.scalars().all()
        ]

        triaged = 0
        for email_id, content in pending:
            try:
                email = await self.get_email(email_id)
                verdict = await self.ai.triage_email(content)
                category = str(verdict.get("category", "actionable")).lower()

                email.category = category
                email.preview = verdict.get("summary") or email.preview

                if verdict.get("actionItems"):
                    tasks = await self.ai.generate_tasks_from_email({**content, "category": category})
                    for data in tasks:
                        priority = str(data.get("priority") or "medium").lower()
                        self.db.add(Task(
                            user_id=self.user_id,
                            title=data["title"],
                            description=data.get("description"),
                            status="pending",
                            priority=priority if priority in VALID_TASK_PRIORITIES else "medium",
                            due_at=parse_deadline(data.get("deadline")),
                            source=content["subject"] or None,
                        ))

                await self.db.commit()
                triaged += 1
            except Exception as e:
                logger.warning(f"Failed to triage email {email_id}: {e}")
                await self.db.rollback()

        processed = len(pending)
        logger.info(f"Triage for user {self.user_id}: {triaged}/{processed}")
        return {
            "triaged": triaged,
            "processed": processed,
            "message": f"AI triaged {triaged} out of {processed} emails",
        }

    async def draft_reply(self, email_id: str, persona: str = "professional") -> Dict[str, Any]:
        email = await self.get_email(email_id)

        draft = await self.ai.draft_email_reply({
            "subject": email.subject or "",
            "sender": email.sender or "",
            "body": email.body or "",
            "category": email.category,
        }, persona)
        scores = await self.ai.score_action_confidence({
            "type": "email_reply",
            "persona": persona,
            "subject": email.subject,
            "draft": draft,
        })
        confidence = float(scores.get("overall", 0.5))

        self.db.add(Draft(
            user_id=self.user_id,
            email_id=email.id,
            content=draft,
            confidence=confidence,
            persona=persona,
        ))
        await self.db.commit()

        return {"draft": draft, "confidence": confidence, "persona": persona, "emailId": email.id}

    async def update_status(self, email_id: str, status: str) -> Email:
        email = await self.get_email(email_id)
        email.status = status
        await self.db.commit()
        await self.db.refresh(email)
        return email
