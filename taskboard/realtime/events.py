"""Typed realtime events.

Every frame on the live feed is ``{"type", "data", "timestamp"}``. The type
is an EventType and the data is one of the payload dataclasses below, so a
consumer knows exactly which ids a given event carries. Payloads are
invalidation hints: consumers re-fetch the named entities rather than
applying the payload as a delta.
"""

from __future__ import annotations

import enum
import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Union

HEARTBEAT_FRAME = ": heartbeat\n\n"


class EventType(str, enum.Enum):
    CONNECTED = "connected"
    PROJECT_CREATED = "project_created"
    PROJECT_UPDATED = "project_updated"
    PROJECT_DELETED = "project_deleted"
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_MOVED = "task_moved"
    TASK_DELETED = "task_deleted"
    COMMENT_ADDED = "comment_added"
    MILESTONE_CREATED = "milestone_created"
    MILESTONE_UPDATED = "milestone_updated"
    MILESTONE_COMPLETED = "milestone_completed"
    PROJECT_UPDATE_CREATED = "project_update_created"


# --- Payloads ---------------------------------------------------------------
# Field names are camelCase because they are the wire format.


@dataclass(frozen=True, slots=True)
class Connected:
    message: str = "Successfully connected to real-time updates"


@dataclass(frozen=True, slots=True)
class ProjectChanged:
    projectId: str
    changes: Optional[list[str]] = None


@dataclass(frozen=True, slots=True)
class TaskChanged:
    taskId: str
    projectId: str
    changes: Optional[list[str]] = None


@dataclass(frozen=True, slots=True)
class TaskMoved:
    taskId: str
    projectId: str
    fromColumn: str
    toColumn: str
    fromPosition: int
    toPosition: int


@dataclass(frozen=True, slots=True)
class CommentAdded:
    commentId: str
    taskId: str
    projectId: str


@dataclass(frozen=True, slots=True)
class MilestoneChanged:
    milestoneId: str
    projectId: str


@dataclass(frozen=True, slots=True)
class ProjectUpdateCreated:
    updateId: str
    projectId: str


Payload = Union[
    Connected,
    ProjectChanged,
    TaskChanged,
    TaskMoved,
    CommentAdded,
    MilestoneChanged,
    ProjectUpdateCreated,
]

PAYLOAD_TYPES = {
    EventType.CONNECTED: Connected,
    EventType.PROJECT_CREATED: ProjectChanged,
    EventType.PROJECT_UPDATED: ProjectChanged,
    EventType.PROJECT_DELETED: ProjectChanged,
    EventType.TASK_CREATED: TaskChanged,
    EventType.TASK_UPDATED: TaskChanged,
    EventType.TASK_MOVED: TaskMoved,
    EventType.TASK_DELETED: TaskChanged,
    EventType.COMMENT_ADDED: CommentAdded,
    EventType.MILESTONE_CREATED: MilestoneChanged,
    EventType.MILESTONE_UPDATED: MilestoneChanged,
    EventType.MILESTONE_COMPLETED: MilestoneChanged,
    EventType.PROJECT_UPDATE_CREATED: ProjectUpdateCreated,
}

if set(PAYLOAD_TYPES) != set(EventType):
    raise RuntimeError("Every event type needs a payload type")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True, slots=True)
class BroadcastEvent:
    """One event on the live feed. Never persisted."""

    type: EventType
    data: Payload
    timestamp: int = field(default_factory=_now_ms)

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.type]
        if not isinstance(self.data, expected):
            raise TypeError(
                f"{self.type.value} expects {expected.__name__}, got {type(self.data).__name__}"
            )

    def to_dict(self) -> dict[str, Any]:
        data = {k: v for k, v in asdict(self.data).items() if v is not None}
        return {"type": self.type.value, "data": data, "timestamp": self.timestamp}

    def to_frame(self) -> str:
        """Serialize as one Server-Sent Events data frame."""
        return f"data: {json.dumps(self.to_dict(), separators=(',', ':'))}\n\n"


def make_event(event_type: Union[EventType, str], **fields: Any) -> BroadcastEvent:
    """Build an event, checking the payload fields against its type."""
    event_type = EventType(event_type)
    payload = PAYLOAD_TYPES[event_type](**fields)
    return BroadcastEvent(type=event_type, data=payload)


def parse_frame(frame: str) -> Optional[dict[str, Any]]:
    """Decode a data frame back into a dict; None for keep-alive comments."""
    if frame.startswith(":"):
        return None
    lines = [line[len("data: "):] for line in frame.splitlines() if line.startswith("data: ")]
    return json.loads("".join(lines))
