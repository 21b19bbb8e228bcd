from __future__ import annotations

import time
from typing import AsyncIterator

from fastapi import APIRouter
from sse_starlette.sse import EventSourceResponse

from deepsexa.config import settings
from deepsexa.llm_client import filter_chat_messages, get_chat_client, stream_chat
from deepsexa.models.schemas import ChatRequest
from deepsexa.services import logger as log_service
from deepsexa.services import streaming
from deepsexa.services.prompt_store import render_prompt

router = APIRouter(prefix="/api/chat", tags=["chat"])


async def chat_events(messages: list[dict[str, str]]) -> AsyncIterator[dict[str, str]]:
    """SSE payloads for one model reply: tokens, then `done` or `error`."""
    t0 = time.monotonic()
    try:
        client = get_chat_client()
        async with stream_chat(
            client,
            system=render_prompt("chat.system_prompt"),
            messages=messages,
        ) as stream:
            async for text in stream.text_stream:
                yield streaming.token(text).to_sse()
            usage = await stream.get_usage()

        elapsed_ms = int((time.monotonic() - t0) * 1000)
        log_service.log_llm_call(
            model=settings.chat_model,
            caller="chat",
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            duration_ms=elapsed_ms,
        )
        yield streaming.done(tokens_used=usage.total_tokens, runtime_ms=elapsed_ms).to_sse()
    except Exception as e:
        log_service.log_llm_call(
            model=settings.chat_model,
            caller="chat",
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(e),
        )
        yield streaming.error(
            str(e) or "An unknown error occurred",
            details="Check server logs for more information",
        ).to_sse()


@router.post("")
async def chat(request: ChatRequest):
    """Stream the reasoning model's reply as SSE token events."""
    messages = filter_chat_messages(request.messages)
    log_service.log_event(
        event_type="chat_started",
        message="Chat stream requested",
        message_count=len(messages),
        roles=",".join(m["role"] for m in messages),
    )
    return EventSourceResponse(chat_events(messages))
