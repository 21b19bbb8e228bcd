from __future__ import annotations

import asyncio
from typing import Callable, Sequence

from deepsexa.errors import RunCancelledError
from deepsexa.models.schemas import SearchResult, WebpageSummary
from deepsexa.pipeline.base import CollaboratorClient
from deepsexa.services import logger as log_service


def page_text(result: SearchResult) -> str:
    """Metadata header followed by the page body, as the summarizer expects."""
    return (
        f"Title: {result.title}\n"
        f"URL: {result.url}\n"
        f"Published Date: {result.published_date or 'Unknown'}\n\n"
        f"{result.text or ''}"
    )


class SummarizationFanout(CollaboratorClient):
    """Summarize every search result concurrently.

    A failed item comes back with `summary=None`; the rest of the batch is
    unaffected, since one missing citation beats losing the whole context.
    """

    path = "/api/summarize"

    async def summarize_one(
        self,
        result: SearchResult,
        query: str,
        history: Sequence[str],
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> SearchResult:
        payload = await self.post_json(
            {"text": page_text(result), "query": query, "previousQueries": list(history)},
            should_continue=should_continue,
        )
        parsed: WebpageSummary = self.validate(WebpageSummary, payload)
        return result.model_copy(update={"summary": parsed.summary})

    async def summarize_all(
        self,
        results: Sequence[SearchResult],
        query: str,
        history: Sequence[str],
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> list[SearchResult]:
        async def run_one(index: int, result: SearchResult) -> SearchResult:
            try:
                return await self.summarize_one(
                    result, query, history, should_continue=should_continue
                )
            except RunCancelledError:
                raise
            except Exception as e:
                log_service.log_event(
                    event_type="summarize_item_failed",
                    message="Summarization failed, keeping result without summary",
                    index=index,
                    url=result.url,
                    error=str(e),
                )
                return result.model_copy(update={"summary": None})

        return list(await asyncio.gather(*(run_one(i, r) for i, r in enumerate(results))))
