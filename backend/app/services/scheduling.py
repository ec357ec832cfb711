from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytz

from app.core.config import get_settings
from app.schemas.google import BusyInterval, TimeSlot
from app.services.google_workspace import GoogleWorkspaceClient
from app.utils.logger import get_logger

settings = get_settings()
logger = get_logger(__name__)

SUGGESTION_WINDOW_DAYS = 7


def _aware(dt: datetime) -> datetime:
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def find_free_slots(
    busy: List[BusyInterval],
    duration_minutes: int,
    start: datetime,
    end: datetime,
    tz_name: str = "UTC",
    work_start: int = 9,
    work_end: int = 17,
    step_minutes: int = 30,
    max_slots: int = 5,
) -> List[TimeSlot]:
    """
    Scan the working hours of every day in [start, end) for gaps that fit
    `duration_minutes` without touching a busy interval.

    Candidate starts are aligned to `step_minutes` from the start of the
    working day. Results are chronological and capped at `max_slots`.
    """
    if duration_minutes <= 0 or max_slots <= 0 or step_minutes <= 0:
        return []

    tz = pytz.timezone(tz_name)
    start = _aware(start)
    end = _aware(end)
    if start >= end:
        return []

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes)
    intervals = sorted(
        ((_aware(b.start), _aware(b.end)) for b in busy),
        key=lambda pair: pair[0]
    )

    slots: List[TimeSlot] = []
    pointer = 0
    day = start.astimezone(tz).date()
    last_day = end.astimezone(tz).date()

    while day <= last_day and len(slots) < max_slots:
        day_open = tz.localize(datetime(day.year, day.month, day.day, work_start))
        day_close = tz.localize(datetime(day.year, day.month, day.day, work_end))

        candidate = day_open
        while candidate + duration <= day_close and len(slots) < max_slots:
            candidate_end = candidate + duration
            if candidate < start:
                candidate += step
                continue
            if candidate_end > end:
                break

            # Busy intervals ending at or before this candidate can never overlap a later one
            while pointer < len(intervals) and intervals[pointer][1] <= candidate:
                pointer += 1

            conflict = False
            for busy_start, busy_end in intervals[pointer:]:
                if busy_start >= candidate_end:
                    break
                if candidate < busy_end and candidate_end > busy_start:
                    conflict = True
                    break

            if not conflict:
                slots.append(TimeSlot(
                    start=candidate.astimezone(timezone.utc),
                    end=candidate_end.astimezone(timezone.utc),
                ))
            candidate += step

        day += timedelta(days=1)

    return slots


async def suggest_slots(client: GoogleWorkspaceClient, duration_minutes: int,
                        now: Optional[datetime] = None) -> List[TimeSlot]:
    now = _aware(now or datetime.now(timezone.utc))
    window_end = now + timedelta(days=SUGGESTION_WINDOW_DAYS)

    busy = await client.free_busy(now, window_end)
    logger.info(f"Free/busy returned {len(busy)} busy intervals for the next {SUGGESTION_WINDOW_DAYS} days")

    return find_free_slots(
        busy,
        duration_minutes,
        now,
        window_end,
        tz_name=settings.TIMEZONE,
        work_start=settings.WORKING_HOURS_START,
        work_end=settings.WORKING_HOURS_END,
        step_minutes=settings.SLOT_STEP_MINUTES,
        max_slots=settings.MAX_SLOT_SUGGESTIONS,
    )
