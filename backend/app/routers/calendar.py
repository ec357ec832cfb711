from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.errors import AppError
from app.core.responses import envelope
from app.models.user import User
from app.routers.deps import get_current_user
from app.schemas.calendar import EventRecord, EventCreate, EventUpdate, SuggestSlotsRequest
from app.services.calendar_service import CalendarService, to_utc

router = APIRouter(prefix="/calendar", tags=["calendar"])


def _record(event) -> dict:
    return EventRecord.model_validate(event).model_dump(mode="json")


@router.get("/events")
async def get_events(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    sync: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = CalendarService(db, current_user.id)
    if sync:
        await service.sync_events()

    if start is None or end is None:
        events = await service.get_live_events()
        data = [e.model_dump(mode="json", by_alias=True) for e in events]
    else:
        if to_utc(start) > to_utc(end):
            raise AppError(400, "VALIDATION_ERROR", "start must be before end")
        data = [_record(e) for e in await service.get_stored_events(start, end)]

    return envelope(data, count=len(data))


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if to_utc(data.end_time) <= to_utc(data.start_time):
        raise AppError(400, "VALIDATION_ERROR", "endTime must be after startTime")
    service = CalendarService(db, current_user.id)
    return envelope(_record(await service.create_event(data)))


@router.put("/events/{event_id}")
async def update_event(
    event_id: int,
    data: EventUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = CalendarService(db, current_user.id)
    return envelope(_record(await service.update_event(event_id, data)))


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = CalendarService(db, current_user.id)
    await service.delete_event(event_id)
    return envelope({"message": "Event deleted successfully"})


@router.post("/suggest-slots")
async def suggest_slots(
    data: SuggestSlotsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    service = CalendarService(db, current_user.id)
    slots = await service.suggest_slots(data.duration)
    return envelope({"slots": [s.model_dump(mode="json") for s in slots]}, count=len(slots))
