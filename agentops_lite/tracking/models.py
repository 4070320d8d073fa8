"""Data models for sessions, traces and tracked events."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EndState(str, Enum):
    """Terminal state assigned when a session or trace ends."""

    SUCCESS = "Success"
    FAIL = "Fail"
    INDETERMINATE = "Indeterminate"


class EventType(str, Enum):
    """Kind of a tracked event (the wire ``type`` field)."""

    LLM = "llm"
    TOOL = "tool"
    ACTION = "action"
    ERROR = "error"
    CUSTOM = "custom"


def generate_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Event:
    """A single immutable tracked fact."""

    id: str
    type: EventType
    timestamp: int
    data: dict[str, Any]
    tags: list[str] | None = None
    session_id: str | None = None
    trace_id: str | None = None

    @classmethod
    def create(
        cls,
        type: EventType,
        data: dict[str, Any],
        *,
        session_id: str | None = None,
        trace_id: str | None = None,
        tags: list[str] | None = None,
    ) -> Event:
        return cls(
            id=generate_id(),
            type=type,
            timestamp=now_ms(),
            data=data,
            tags=tags,
            session_id=session_id,
            trace_id=trace_id,
        )

    @property
    def event_type(self) -> str:
        """The payload marker, e.g. ``llm_call`` or ``trace_end``."""
        return self.data.get("event_type", "")

    def to_dict(self) -> dict[str, Any]:
        """Wire representation; optional keys are omitted when absent."""
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp,
            "data": self.data,
        }
        if self.tags is not None:
            out["tags"] = list(self.tags)
        if self.session_id is not None:
            out["sessionId"] = self.session_id
        if self.trace_id is not None:
            out["traceId"] = self.trace_id
        return out


@dataclass
class Session:
    """One user visit / application run."""

    id: str
    start_time: int
    tags: list[str] = field(default_factory=list)
    trace_name: str | None = None
    events: list[Event] = field(default_factory=list)
    end_time: int | None = None
    state: EndState | None = None

    @property
    def duration_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "tags": list(self.tags),
            "traceName": self.trace_name,
            "events": [e.to_dict() for e in self.events],
            "state": self.state.value if self.state else None,
        }


@dataclass
class Trace:
    """A named unit of work nested under a session."""

    id: str
    name: str
    start_time: int
    session_id: str
    tags: list[str] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    end_time: int | None = None
    state: EndState | None = None

    @property
    def duration_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "tags": list(self.tags),
            "events": [e.to_dict() for e in self.events],
            "state": self.state.value if self.state else None,
            "sessionId": self.session_id,
        }
