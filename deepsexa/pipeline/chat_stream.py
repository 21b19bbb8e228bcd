from __future__ import annotations

from contextlib import aclosing
from typing import AsyncIterator

import httpx

from deepsexa.errors import CollaboratorContractError, TransportError
from deepsexa.models.events import EventType, SSEEvent


class ChatStreamClient:
    """Consumes the SSE token stream served by /api/chat.

    The stream is not retried: a reply that fails midway is a failed run.
    """

    path = "/api/chat"

    def __init__(self, http_client: httpx.AsyncClient, *, base_url: str):
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def events(self, messages: list[dict[str, str]]) -> AsyncIterator[SSEEvent]:
        try:
            async with self.http_client.stream("POST", self.url, json={"messages": messages}) as response:
                if not response.is_success:
                    raise TransportError(
                        f"HTTP error! status: {response.status_code}",
                        status_code=response.status_code,
                    )
                name, data_lines = "message", []
                async for line in response.aiter_lines():
                    if line.startswith(":"):
                        continue
                    if line.startswith("event:"):
                        name = line[len("event:"):].strip()
                    elif line.startswith("data:"):
                        data_lines.append(line[len("data:"):].strip())
                    elif not line and data_lines:
                        try:
                            yield SSEEvent.from_sse(name, "\n".join(data_lines))
                        except ValueError as e:
                            raise CollaboratorContractError(f"Unreadable chat event {name!r}: {e}") from e
                        name, data_lines = "message", []
        except httpx.HTTPError as e:
            raise TransportError(f"Chat stream failed: {e}") from e

    async def stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        """Token text of one reply; stops at `done`, raises on `error`."""
        async with aclosing(self.events(messages)) as events:
            async for event in events:
                if event.event == EventType.TOKEN:
                    if event.text:
                        yield event.text
                elif event.event == EventType.ERROR:
                    raise TransportError(event.data.get("message") or "chat stream reported an error")
                else:
                    return
