from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Sequence

import httpx

from deepsexa.models.schemas import (
    ExternalSummaryContent,
    SearchResponse,
    SearchResult,
    SearchSettings,
)
from deepsexa.pipeline.base import CollaboratorClient
from deepsexa.services.retry import RetryConfig, SleepFunc
from deepsexa.services.search_context import format_search_results


@dataclass
class SearchOutcome:
    results: list[SearchResult] = field(default_factory=list)
    formatted_context: str = ""


class SearchClient(CollaboratorClient):
    path = "/api/search"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        base_url: str,
        retry_config: RetryConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
        summarize_text_max_characters: int = 10000,
    ):
        super().__init__(http_client, base_url=base_url, retry_config=retry_config, sleep=sleep)
        self.summarize_text_max_characters = summarize_text_max_characters

    def effective_settings(self, search_settings: SearchSettings) -> SearchSettings:
        if search_settings.custom_model_mode:
            return search_settings.with_contents(
                ExternalSummaryContent(max_characters=self.summarize_text_max_characters)
            )
        return search_settings

    async def search(
        self,
        query: str,
        history: Sequence[str],
        search_settings: SearchSettings,
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> SearchOutcome:
        """Search with conversation context. An empty result list is not an error."""
        effective = self.effective_settings(search_settings)
        payload = await self.post_json(
            {
                "query": query,
                "previousQueries": list(history),
                "settings": effective.model_dump(mode="json", by_alias=True, exclude_none=True),
            },
            should_continue=should_continue,
        )
        parsed: SearchResponse = self.validate(SearchResponse, payload)
        return SearchOutcome(
            results=parsed.results,
            formatted_context=format_search_results(parsed.results),
        )
