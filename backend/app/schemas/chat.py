from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class ChatMessageRecord(BaseModel):
    id: int
    role: str
    content: str
    is_voice: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)
    is_voice: bool = Field(False, alias="isVoice")

    class Config:
        populate_by_name = True

class StreamMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)
    previous_response: Optional[str] = Field(None, alias="previousResponse")

    class Config:
        populate_by_name = True
