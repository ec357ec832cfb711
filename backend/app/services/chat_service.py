import json
from typing import List, Dict, Any, Optional, AsyncGenerator

from fastapi import Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import SessionLocal
from app.models.chat import ChatMessage
from app.services.ai_service import AIService, ai_service
from app.utils.logger import get_logger

logger = get_logger(__name__)

CONTEXT_TURNS = 10


class ChatService:
    def __init__(self, db: AsyncSession, user_id: str, ai: Optional[AIService] = None):
        self.db = db
        self.user_id = user_id
        self.ai = ai or ai_service

    async def get_history(self, limit: int = 50) -> List[ChatMessage]:
        result = await self.db.execute(
            select(ChatMessage)
            .where(ChatMessage.user_id == self.user_id)
            .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
            .limit(limit)
        )
        return list(reversed(result.scalars().all()))

    async def get_context(self) -> List[Dict[str, Any]]:
        turns = await self.get_history(CONTEXT_TURNS)
        return [{"role": t.role, "content": t.content} for t in turns]

    async def send_message(self, content: str, is_voice: bool = False) -> ChatMessage:
        # Context is read before the new turn is stored so the prompt carries it once
        context = await self.get_context()

        self.db.add(ChatMessage(user_id=self.user_id, role="user", content=content, is_voice=is_voice))
        await self.db.commit()

        reply = await self.ai.generate_chat_response(content, context)

        assistant_message = ChatMessage(user_id=self.user_id, role="assistant", content=reply, is_voice=False)
        self.db.add(assistant_message)
        await self.db.commit()
        await self.db.refresh(assistant_message)
        return assistant_message

    async def stream_message(self, content: str, previous_response: Optional[str] = None,
                             fastapi_request: Optional[Request] = None) -> AsyncGenerator[str, None]:
        context = await self.get_context()
        user_id = self.user_id
        ai = self.ai

        async def event_stream() -> AsyncGenerator[str, None]:
            chunks: List[str] = []
            disconnected = False
            stream = ai.stream_chat_response(content, context, previous_response)
            try:
                async for delta in stream:
                    if fastapi_request is not None and await fastapi_request.is_disconnected():
                        logger.info(f"Client disconnected from chat stream (user {user_id})")
                        disconnected = True
                        break
                    chunks.append(delta)
                    yield f"data: {json.dumps({'delta': delta}, ensure_ascii=False)}\n\n"
            finally:
                await stream.aclose()
                full_response = "".join(chunks)
                if full_response:
                    # The request-scoped session is gone once streaming starts
                    async with SessionLocal() as session:
                        session.add(ChatMessage(user_id=user_id, role="user", content=content, is_voice=False))
                        session.add(ChatMessage(user_id=user_id, role="assistant", content=full_response, is_voice=False))
                        await session.commit()

            if not disconnected:
                yield f"data: {json.dumps({'done': True})}\n\n"

        return event_stream()
