from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.responses import envelope
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.chat import ChatMessageRecord, SendMessageRequest, StreamMessageRequest
from app.services.chat_service import ChatService

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/message")
async def send_message(
    data: SendMessageRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ChatService(db, current_user.id)
    message = await service.send_message(data.message, data.is_voice)
    return envelope(ChatMessageRecord.model_validate(message).model_dump(mode="json"))


@router.post("/stream")
async def stream_message(
    data: StreamMessageRequest,
    fastapi_request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = ChatService(db, current_user.id)
    stream_gen = await service.stream_message(data.message, data.previous_response, fastapi_request)
    return StreamingResponse(stream_gen, media_type="text/event-stream", headers={
        "Cache-Control": "no-cache",
        "Connection": "keep-alive"
    })


@router.get("/history")
async def get_history(
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    messages = await ChatService(db, current_user.id).get_history(limit)
    data = [ChatMessageRecord.model_validate(m).model_dump(mode="json") for m in messages]
    return envelope(data, count=len(data))
