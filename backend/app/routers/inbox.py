from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.responses import envelope
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.inbox import EmailRecord, DraftReplyRequest, StatusUpdateRequest
from app.services.inbox_service import InboxService

router = APIRouter(prefix="/inbox", tags=["inbox"])


@router.get("")
async def get_inbox(
    category: Optional[str] = None,
    limit: int = Query(20, ge=1),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = InboxService(db, current_user.id)
    emails = await service.get_inbox(category, limit)
    data = [e.model_dump(mode="json", by_alias=True) for e in emails]
    return envelope(data, count=len(data))


@router.post("/triage")
async def triage_inbox(db: AsyncSession = Depends(get_db), current_user: User = Depends(get_current_user)):
    service = InboxService(db, current_user.id)
    return envelope(await service.triage())


@router.post("/draft-reply")
async def draft_reply(
    data: DraftReplyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = InboxService(db, current_user.id)
    return envelope(await service.draft_reply(data.email_id, data.persona))


@router.put("/{email_id}/status")
async def update_status(
    email_id: str,
    data: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = InboxService(db, current_user.id)
    email = await service.update_status(email_id, data.status)
    return envelope(EmailRecord.model_validate(email).model_dump(mode="json"))
