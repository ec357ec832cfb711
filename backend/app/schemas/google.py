from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class EmailMessage(BaseModel):
    """A Gmail message parsed into the fields the app works with."""
    id: str
    thread_id: Optional[str] = Field(None, serialization_alias="threadId")
    label_ids: List[str] = Field(default_factory=list, serialization_alias="labelIds")
    subject: str = ""
    sender: str = ""
    sender_email: str = Field("", serialization_alias="senderEmail")
    to: str = ""
    body: str = ""
    snippet: str = ""
    received_at: Optional[datetime] = Field(None, serialization_alias="receivedAt")
    is_read: bool = Field(True, serialization_alias="isRead")
    has_attachments: bool = Field(False, serialization_alias="hasAttachments")

class CalendarEvent(BaseModel):
    id: str
    summary: str = "(No Title)"
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    is_all_day: bool = Field(False, serialization_alias="isAllDay")
    location: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    html_link: Optional[str] = Field(None, serialization_alias="htmlLink")
    attendees: List[str] = Field(default_factory=list)

class BusyInterval(BaseModel):
    start: datetime
    end: datetime

class TimeSlot(BaseModel):
    start: datetime
    end: datetime
