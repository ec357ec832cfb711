from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

class EmailRecord(BaseModel):
    id: str
    thread_id: Optional[str] = None
    subject: Optional[str] = None
    sender: Optional[str] = None
    sender_email: Optional[str] = None
    body: Optional[str] = None
    preview: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    received_at: Optional[datetime] = None
    is_read: bool = False
    has_attachments: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class DraftReplyRequest(BaseModel):
    email_id: str = Field(..., alias="emailId")
    persona: str = "professional"

    class Config:
        populate_by_name = True

class StatusUpdateRequest(BaseModel):
    status: str = Field(..., min_length=1)
