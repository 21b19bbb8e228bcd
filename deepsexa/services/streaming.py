from __future__ import annotations

from typing import Any

from deepsexa.models.events import EventType, SSEEvent


def token(text: str) -> SSEEvent:
    return SSEEvent(event=EventType.TOKEN, data={"text": text})


def done(tokens_used: int = 0, runtime_ms: int | None = None) -> SSEEvent:
    data: dict[str, Any] = {"tokens_used": tokens_used}
    if runtime_ms is not None:
        data["runtime_ms"] = runtime_ms
    return SSEEvent(event=EventType.DONE, data=data)


def error(message: str, details: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if details:
        data["details"] = details
    return SSEEvent(event=EventType.ERROR, data=data)
