"""OpenAI-compatible client factories and the reasoning-aware chat stream."""
from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator

from deepsexa.config import settings
from deepsexa.models.schemas import ChatTurn
from deepsexa.services import logger as log_service
from deepsexa.services.stream_parser import THINK_CLOSE, THINK_OPEN


@dataclass
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class ReasoningChatStream:
    """Async context manager over a streamed chat completion.

    Some providers inline the reasoning as `<think>...</think>` inside
    `delta.content`; others send it separately as `delta.reasoning_content`.
    The latter is re-framed with think markers so consumers see one format.
    """

    def __init__(self, stream_coro: Any):
        self._stream_coro = stream_coro
        self._stream: Any | None = None
        self._usage = Usage()
        self._finished = False
        self._in_reasoning = False

    async def __aenter__(self) -> "ReasoningChatStream":
        self._stream = await self._stream_coro
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._stream is not None:
            await self._stream.close()

    async def _iter_text(self) -> AsyncIterator[str]:
        if self._stream is None:
            return
        async for chunk in self._stream:
            usage = getattr(chunk, "usage", None)
            if usage:
                self._usage = Usage(
                    input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                    output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                )

            choices = getattr(chunk, "choices", None) or []
            if not choices:
                continue
            delta = getattr(choices[0], "delta", None)
            if not delta:
                continue

            reasoning = getattr(delta, "reasoning_content", None)
            if reasoning:
                if not self._in_reasoning:
                    self._in_reasoning = True
                    reasoning = THINK_OPEN + reasoning
                yield reasoning

            text = getattr(delta, "content", None)
            if text:
                if self._in_reasoning:
                    self._in_reasoning = False
                    text = THINK_CLOSE + text
                yield text

        if self._in_reasoning:
            self._in_reasoning = False
            yield THINK_CLOSE
        self._finished = True

    @property
    def text_stream(self) -> AsyncIterator[str]:
        return self._iter_text()

    async def get_usage(self) -> Usage:
        if not self._finished:
            async for _ in self.text_stream:
                pass
        return self._usage


def filter_chat_messages(messages: list[ChatTurn]) -> list[dict[str, str]]:
    """Drop every system message except one in the last position."""
    last_index = len(messages) - 1
    return [
        {"role": m.role, "content": m.content}
        for i, m in enumerate(messages)
        if m.role != "system" or i == last_index
    ]


def get_chat_client():
    """AsyncOpenAI pointed at the reasoning chat provider."""
    from openai import AsyncOpenAI

    if not settings.chat_api_key:
        raise RuntimeError("CHAT_API_KEY is not configured")
    return AsyncOpenAI(
        api_key=settings.chat_api_key,
        base_url=settings.chat_base_url.strip() or None,
    )


def get_openai_client():
    """AsyncOpenAI used for date parsing and page summarization."""
    from openai import AsyncOpenAI

    if not settings.openai_api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured")
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url.strip() or None,
    )


def stream_chat(client: Any, *, system: str, messages: list[dict[str, str]]) -> ReasoningChatStream:
    stream = client.chat.completions.create(
        model=settings.chat_model,
        messages=[{"role": "system", "content": system}, *messages],
        max_tokens=settings.chat_max_tokens,
        stream=True,
    )
    return ReasoningChatStream(stream)


async def complete_json(
    client: Any,
    *,
    model: str,
    caller: str,
    messages: list[dict[str, str]],
) -> dict[str, Any]:
    """Run a JSON-mode completion and return the decoded object."""
    t0 = time.monotonic()
    try:
        response = await client.chat.completions.create(
            model=model,
            messages=messages,
            response_format={"type": "json_object"},
        )
    except Exception as e:
        log_service.log_llm_call(
            model=model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(e),
        )
        raise

    usage = getattr(response, "usage", None)
    log_service.log_llm_call(
        model=model,
        caller=caller,
        input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
        output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        duration_ms=int((time.monotonic() - t0) * 1000),
    )

    content = response.choices[0].message.content if response.choices else None
    if not content:
        raise ValueError(f"No response content from {model}")
    payload = json.loads(content)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object from {model}")
    return payload
