from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class EventRecord(BaseModel):
    id: int
    google_event_id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    attendees: Optional[List[str]] = None
    status: Optional[str] = None
    is_all_day: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class EventCreate(BaseModel):
    title: str
    description: Optional[str] = None
    start_time: datetime = Field(..., alias="startTime")
    end_time: datetime = Field(..., alias="endTime")
    location: Optional[str] = None
    attendees: List[str] = Field(default_factory=list)
    is_all_day: bool = Field(False, alias="isAllDay")

    class Config:
        populate_by_name = True

class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    location: Optional[str] = None
    attendees: Optional[List[str]] = None
    status: Optional[str] = None
    is_all_day: Optional[bool] = Field(None, alias="isAllDay")

    class Config:
        populate_by_name = True

class SuggestSlotsRequest(BaseModel):
    duration: int = 60
