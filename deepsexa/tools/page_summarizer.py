from __future__ import annotations

from typing import Any, Sequence

from deepsexa.config import settings
from deepsexa.llm_client import complete_json, get_openai_client
from deepsexa.models.schemas import WebpageSummary
from deepsexa.services.prompt_store import render_prompt


async def summarize_page(
    text: str,
    query: str,
    previous_queries: Sequence[str] = (),
    *,
    client: Any = None,
) -> WebpageSummary:
    """Summarize one page in the context of the conversation so far."""
    if previous_queries:
        previous_block = (
            "Previous Queries (in chronological order): " + " → ".join(previous_queries)
        )
    else:
        previous_block = "No previous queries"

    payload = await complete_json(
        client or get_openai_client(),
        model=settings.summarizer_model,
        caller="summarizer",
        messages=[
            {"role": "system", "content": render_prompt("summarizer.system_prompt")},
            {
                "role": "user",
                "content": render_prompt(
                    "summarizer.user_prompt",
                    query=query,
                    previous_block=previous_block,
                    text=text,
                ),
            },
        ],
    )
    return WebpageSummary.model_validate(payload)
