from __future__ import annotations

from datetime import date
from typing import Any, Sequence

from deepsexa.config import settings
from deepsexa.llm_client import complete_json, get_openai_client
from deepsexa.models.schemas import DateRangeResponse
from deepsexa.services.prompt_store import render_prompt


def _clamp_to_today(parsed: DateRangeResponse, today: date) -> DateRangeResponse:
    rng = parsed.date_range
    start = min(rng.start_date, today) if rng.start_date else None
    end = min(rng.end_date, today) if rng.end_date else None
    if start == rng.start_date and end == rng.end_date:
        return parsed
    return parsed.model_copy(
        update={"date_range": rng.model_copy(update={"start_date": start, "end_date": end})}
    )


async def parse_date_range(
    query: str,
    previous_queries: Sequence[str] = (),
    *,
    client: Any = None,
    today: date | None = None,
) -> DateRangeResponse:
    """Ask the date-parsing model for the range implied by the conversation."""
    today = today or date.today()
    previous_block = (
        "\nPrevious queries: " + "\n".join(previous_queries) if previous_queries else ""
    )
    payload = await complete_json(
        client or get_openai_client(),
        model=settings.date_parser_model,
        caller="date_parser",
        messages=[
            {
                "role": "system",
                "content": render_prompt("date_parser.system_prompt", today_iso=today.isoformat()),
            },
            {
                "role": "user",
                "content": render_prompt(
                    "date_parser.user_prompt", query=query, previous_block=previous_block
                ),
            },
        ],
    )
    return _clamp_to_today(DateRangeResponse.model_validate(payload), today)
