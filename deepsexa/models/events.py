"""Server-sent events exchanged between /api/chat and the chat-stream client."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    TOKEN = "token"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class SSEEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def to_sse(self) -> dict[str, str]:
        """Shape accepted by sse_starlette's EventSourceResponse."""
        return {"event": self.event.value, "data": json.dumps(self.data)}

    @classmethod
    def from_sse(cls, event: str, data: str) -> "SSEEvent":
        """Decode one received event; raises ValueError for unknown names or bad JSON."""
        payload = json.loads(data) if data else {}
        if not isinstance(payload, dict):
            raise ValueError(f"SSE data for {event!r} is not a JSON object")
        return cls(event=EventType(event), data=payload)

    @property
    def text(self) -> str:
        return str(self.data.get("text") or "")
