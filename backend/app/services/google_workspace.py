import base64
import re
import httpx
import logging
from email.mime.text import MIMEText
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from app.schemas.google import EmailMessage, CalendarEvent, BusyInterval

logger = logging.getLogger(__name__)

class GoogleWorkspaceClient:
    GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
    CALENDAR_API_URL = "https://www.googleapis.com/calendar/v3"

    def __init__(self, access_token: str, timeout: float = 20.0):
        self.access_token = access_token
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json"
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers=self.headers, timeout=self.timeout)

    # ----------------------------
    # Gmail
    # ----------------------------

    async def list_messages(self, max_results: int = 50, q: Optional[str] = None, label_ids: Optional[List[str]] = None) -> List[EmailMessage]:
        params: Dict[str, Any] = {"maxResults": max_results}
        if q:
            params["q"] = q
        # httpx repeats list values as labelIds=A&labelIds=B
        params["labelIds"] = label_ids or ["INBOX"]

        async with self._client() as client:
            response = await client.get(f"{self.GMAIL_API_URL}/messages", params=params)
            response.raise_for_status()
            messages_meta = response.json().get("messages", [])

            results = []
            for meta in messages_meta:
                detail = await client.get(f"{self.GMAIL_API_URL}/messages/{meta['id']}", params={"format": "full"})
                detail.raise_for_status()
                results.append(self.parse_email(detail.json()))
            return results

    async def get_email(self, message_id: str) -> EmailMessage:
        async with self._client() as client:
            response = await client.get(f"{self.GMAIL_API_URL}/messages/{message_id}", params={"format": "full"})
            response.raise_for_status()
            return self.parse_email(response.json())

    async def modify_labels(self, message_id: str, add_labels: Optional[List[str]] = None, remove_labels: Optional[List[str]] = None) -> Dict[str, Any]:
        body = {"addLabelIds": add_labels or [], "removeLabelIds": remove_labels or []}
        async with self._client() as client:
            response = await client.post(f"{self.GMAIL_API_URL}/messages/{message_id}/modify", json=body)
            response.raise_for_status()
            return response.json()

    async def send_email(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        message = MIMEText(body, "plain", "utf-8")
        message["To"] = to
        message["Subject"] = subject
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")

        async with self._client() as client:
            response = await client.post(f"{self.GMAIL_API_URL}/messages/send", json={"raw": raw})
            response.raise_for_status()
            return response.json()

    async def get_profile(self) -> Dict[str, Any]:
        async with self._client() as client:
            response = await client.get(f"{self.GMAIL_API_URL}/profile")
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _decode_body(data: Optional[str]) -> str:
        if not data:
            return ""
        padded = data + "=" * (-len(data) % 4)
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")

    @classmethod
    def parse_email(cls, data: Dict[str, Any]) -> EmailMessage:
        payload = data.get("payload", {}) or {}
        headers = payload.get("headers", []) or []

        def header(name: str) -> str:
            return next((h.get("value", "") for h in headers if h.get("name") == name), "")

        body = ""
        parts = payload.get("parts") or []
        if (payload.get("body") or {}).get("data"):
            body = cls._decode_body(payload["body"]["data"])
        elif parts:
            text_part = next(
                (p for p in parts if p.get("mimeType") == "text/plain" and (p.get("body") or {}).get("data")),
                None
            )
            if text_part:
                body = cls._decode_body(text_part["body"]["data"])

        subject = header("Subject")
        sender = header("From")
        snippet = f"{subject} - {body[:100]}..." if subject else body[:150]

        match = re.search(r"<([^>]+)>", sender)
        sender_email = match.group(1) if match else sender

        received_at = None
        if data.get("internalDate"):
            received_at = datetime.fromtimestamp(int(data["internalDate"]) / 1000.0, tz=timezone.utc)

        label_ids = data.get("labelIds") or []
        has_attachments = any(
            p.get("mimeType") and not p["mimeType"].startswith("text/") for p in parts
        )

        return EmailMessage(
            id=data["id"],
            thread_id=data.get("threadId"),
            label_ids=label_ids,
            subject=subject,
            sender=sender,
            sender_email=sender_email,
            to=header("To"),
            body=body,
            snippet=snippet,
            received_at=received_at,
            is_read="UNREAD" not in label_ids,
            has_attachments=has_attachments,
        )

    # ----------------------------
    # Calendar
    # ----------------------------

    @staticmethod
    def _iso(dt: datetime) -> str:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    async def list_events(self, time_min: datetime, time_max: Optional[datetime] = None, max_results: int = 50, q: Optional[str] = None) -> List[CalendarEvent]:
        params: Dict[str, Any] = {
            "timeMin": self._iso(time_min),
            "maxResults": max_results,
            "singleEvents": "true",
            "orderBy": "startTime"
        }
        if time_max:
            params["timeMax"] = self._iso(time_max)
        if q:
            params["q"] = q

        async with self._client() as client:
            response = await client.get(f"{self.CALENDAR_API_URL}/calendars/primary/events", params=params)
            response.raise_for_status()
            items = response.json().get("items", [])
            return [self.parse_event(item) for item in items]

    def _event_body(self, title: Optional[str], start: Optional[datetime], end: Optional[datetime],
                    description: Optional[str] = None, location: Optional[str] = None,
                    attendees: Optional[List[str]] = None, is_all_day: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"summary": title, "description": description, "location": location}
        if start is not None:
            body["start"] = {"date": start.date().isoformat()} if is_all_day else {"dateTime": self._iso(start), "timeZone": "UTC"}
        if end is not None:
            body["end"] = {"date": end.date().isoformat()} if is_all_day else {"dateTime": self._iso(end), "timeZone": "UTC"}
        if attendees is not None:
            body["attendees"] = [{"email": a} for a in attendees]
        return {k: v for k, v in body.items() if v is not None}

    async def create_event(self, title: str, start: datetime, end: datetime, description: Optional[str] = None,
                           location: Optional[str] = None, attendees: Optional[List[str]] = None,
                           is_all_day: bool = False) -> CalendarEvent:
        body = self._event_body(title, start, end, description, location, attendees, is_all_day)
        async with self._client() as client:
            response = await client.post(f"{self.CALENDAR_API_URL}/calendars/primary/events", json=body)
            response.raise_for_status()
            return self.parse_event(response.json())

    async def update_event(self, event_id: str, title: Optional[str] = None, start: Optional[datetime] = None,
                           end: Optional[datetime] = None, description: Optional[str] = None,
                           location: Optional[str] = None, attendees: Optional[List[str]] = None,
                           is_all_day: bool = False) -> CalendarEvent:
        body = self._event_body(title, start, end, description, location, attendees, is_all_day)
        async with self._client() as client:
            response = await client.patch(f"{self.CALENDAR_API_URL}/calendars/primary/events/{event_id}", json=body)
            response.raise_for_status()
            return self.parse_event(response.json())

    async def delete_event(self, event_id: str) -> bool:
        async with self._client() as client:
            response = await client.delete(f"{self.CALENDAR_API_URL}/calendars/primary/events/{event_id}")
            if response.status_code == 410:
                # already gone
                return True
            response.raise_for_status()
            return True

    async def free_busy(self, time_min: datetime, time_max: datetime) -> List[BusyInterval]:
        body = {
            "timeMin": self._iso(time_min),
            "timeMax": self._iso(time_max),
            "items": [{"id": "primary"}],
        }
        async with self._client() as client:
            response = await client.post(f"{self.CALENDAR_API_URL}/freeBusy", json=body)
            response.raise_for_status()
            busy = response.json().get("calendars", {}).get("primary", {}).get("busy", [])
            return [BusyInterval(start=b["start"], end=b["end"]) for b in busy]

    async def list_calendars(self) -> List[Dict[str, Any]]:
        async with self._client() as client:
            response = await client.get(f"{self.CALENDAR_API_URL}/users/me/calendarList", params={"maxResults": 10})
            response.raise_for_status()
            return response.json().get("items", [])

    @classmethod
    def parse_event(cls, item: Dict[str, Any]) -> CalendarEvent:
        start = item.get("start", {}) or {}
        end = item.get("end", {}) or {}
        attendees = [a.get("email") for a in item.get("attendees", []) if a.get("email")]
        return CalendarEvent(
            id=item["id"],
            summary=item.get("summary", "(No Title)"),
            start=cls._parse_calendar_date(start),
            end=cls._parse_calendar_date(end),
            is_all_day="dateTime" not in start,
            location=item.get("location"),
            description=item.get("description"),
            status=item.get("status"),
            html_link=item.get("htmlLink"),
            attendees=attendees
        )

    @staticmethod
    def _parse_calendar_date(date_obj: Dict[str, Any]) -> Optional[datetime]:
        value = date_obj.get("dateTime") or date_obj.get("date")
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
