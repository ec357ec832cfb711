from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AppError
from app.models.event import Event
from app.schemas.calendar import EventCreate, EventUpdate
from app.schemas.google import CalendarEvent, TimeSlot
from app.services.google_accounts import GoogleAccountService
from app.services.scheduling import suggest_slots
from app.utils.logger import get_logger

logger = get_logger(__name__)

LIVE_WINDOW_DAYS = 30
LIVE_MAX_RESULTS = 50
EDITABLE_FIELDS = {"title", "description", "start_time", "end_time", "location", "attendees", "status", "is_all_day"}


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CalendarService:
    def __init__(self, db: AsyncSession, user_id: str):
        self.db = db
        self.user_id = user_id
        self.accounts = GoogleAccountService(db, user_id)

    async def get_live_events(self) -> List[CalendarEvent]:
        client = await self.accounts.get_client()
        now = datetime.now(timezone.utc)
        return await client.list_events(now, now + timedelta(days=LIVE_WINDOW_DAYS), max_results=LIVE_MAX_RESULTS)

    async def sync_events(self) -> int:
        """Replace the user's stored events with Google's upcoming ones."""
        events = await self.get_live_events()
        await self.db.execute(delete(Event).where(Event.user_id == self.user_id))
        for item in events:
            self.db.add(Event(
                user_id=self.user_id,
                google_event_id=item.id,
                title=item.summary,
                description=item.description,
                start_time=to_utc(item.start),
                end_time=to_utc(item.end),
                location=item.location,
                attendees=item.attendees,
                status=item.status,
                is_all_day=item.is_all_day,
            ))
        await self.db.commit()
        logger.info(f"Synced {len(events)} calendar events for user {self.user_id}")
        return len(events)

    async def get_stored_events(self, start: datetime, end: datetime) -> List[Event]:
        start, end = to_utc(start), to_utc(end)
        result = await self.db.execute(
            select(Event)
            .where(Event.user_id == self.user_id, Event.start_time >= start, Event.end_time <= end)
            .order_by(Event.start_time.asc(), Event.id.asc())
        )
        return list(result.scalars().all())

    async def get_event(self, event_id: int) -> Event:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id, Event.user_id == self.user_id)
        )
        event = result.scalars().first()
        if not event:
            raise AppError(404, "EVENT_NOT_FOUND", "Event not found")
        return event

    async def create_event(self, data: EventCreate) -> Event:
        client = await self.accounts.get_client()
        created = await client.create_event(
            title=data.title,
            start=to_utc(data.start_time),
            end=to_utc(data.end_time),
            description=data.description,
            location=data.location,
            attendees=data.attendees,
            is_all_day=data.is_all_day,
        )

        event = Event(
            user_id=self.user_id,
            google_event_id=created.id,
            title=data.title,
            description=data.description,
            start_time=to_utc(data.start_time),
            end_time=to_utc(data.end_time),
            location=data.location,
            attendees=data.attendees,
            status=created.status or "confirmed",
            is_all_day=data.is_all_day,
        )
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)
        return event

    async def update_event(self, event_id: int, data: EventUpdate) -> Event:
        event = await self.get_event(event_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if k in EDITABLE_FIELDS}
        if not changes:
            raise AppError(400, "NO_UPDATES", "No valid fields to update")

        for field in ("start_time", "end_time"):
            if field in changes:
                changes[field] = to_utc(changes[field])

        for field, value in changes.items():
            setattr(event, field, value)
        await self.db.commit()
        await self.db.refresh(event)

        if event.google_event_id:
            try:
                client = await self.accounts.get_client()
                await client.update_event(
                    event.google_event_id,
                    title=changes.get("title"),
                    start=changes.get("start_time"),
                    end=changes.get("end_time"),
                    description=changes.get("description"),
                    location=changes.get("location"),
                    attendees=changes.get("attendees"),
                    is_all_day=event.is_all_day,
                )
            except Exception as e:
                logger.warning(f"Failed to push event {event.id} update to Google: {e}")

        return event

    async def delete_event(self, event_id: int):
        event = await self.get_event(event_id)
        google_event_id = event.google_event_id

        await self.db.delete(event)
        await self.db.commit()

        if google_event_id:
            try:
                client = await self.accounts.get_client()
                await client.delete_event(google_event_id)
            except Exception as e:
                logger.warning(f"Failed to delete Google event {google_event_id}: {e}")

    async def suggest_slots(self, duration: int) -> List[TimeSlot]:
        client = await self.accounts.get_client()
        return await suggest_slots(client, duration)
