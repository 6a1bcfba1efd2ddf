"""Event Manager: the service that owns prediction events."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

import httpx

from apps.predictbot.services.context_codec import EventType

logger = logging.getLogger(__name__)


class EventManagerError(Exception):
    def __init__(self, code: str, detail: str | None = None):
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code = code
        self.detail = detail


@dataclass
class Event:
    group_id: int
    question: str
    event_type: EventType
    options: list[str]
    deadline: datetime
    created_by: int
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    status: str = "active"
    # Filled in by the manager on creation.
    id: int = 0
    publication_ref: str = ""

    def to_payload(self) -> dict:
        return {
            "group_id": self.group_id,
            "question": self.question,
            "event_type": self.event_type.value,
            "options": list(self.options),
            "deadline": self.deadline.astimezone(timezone.utc).isoformat(),
            "created_by": self.created_by,
            "created_at": self.created_at.astimezone(timezone.utc).isoformat(),
            "status": self.status,
        }


class EventManager(Protocol):
    def create_event(self, event: Event) -> int: ...


class HttpEventManager:
    """Creates events by POSTing them to an external endpoint.

    Expected response: ``{"id": <int>, "publication_ref": <str, optional>}``.
    """

    def __init__(self, url: str, timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    def create_event(self, event: Event) -> int:
        if not self.url:
            raise EventManagerError("not_configured", "event_manager_url is empty")
        try:
            r = httpx.post(self.url, json=event.to_payload(), timeout=self.timeout)
        except httpx.HTTPError as e:
            raise EventManagerError("request_failed", str(e)[:200]) from e
        if r.status_code >= 400:
            raise EventManagerError(f"http_{r.status_code}", r.text[:200])
        try:
            data = r.json()
            event_id = int(data["id"])
        except (ValueError, KeyError, TypeError) as e:
            raise EventManagerError("bad_response", r.text[:200]) from e
        event.id = event_id
        event.publication_ref = str(data.get("publication_ref") or "")
        logger.info("event created event_id=%s group_id=%s", event_id, event.group_id)
        return event_id
