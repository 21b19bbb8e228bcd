from __future__ import annotations

from typing import Any

import httpx

from deepsexa.config import settings
from deepsexa.models.schemas import SearchResult, SearchSettings


async def search(
    query: str,
    search_settings: SearchSettings,
    *,
    http_client: httpx.AsyncClient | None = None,
) -> list[SearchResult]:
    """Execute an Exa search with contents and normalize the results."""
    if not settings.exa_api_key:
        raise RuntimeError("EXA_API_KEY is not configured")

    url = f"{settings.exa_base_url.rstrip('/')}/search"
    body = search_settings.to_exa_payload(query)
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "x-api-key": settings.exa_api_key,
    }

    async def _do_request(client: httpx.AsyncClient) -> dict[str, Any]:
        response = await client.post(url, json=body, headers=headers)
        response.raise_for_status()
        payload = response.json()
        return payload if isinstance(payload, dict) else {}

    if http_client is None:
        async with httpx.AsyncClient(timeout=settings.search_timeout_seconds) as client:
            payload = await _do_request(client)
    else:
        payload = await _do_request(http_client)

    raw_results = payload.get("results", []) or []
    return [
        SearchResult.model_validate(item)
        for item in raw_results
        if isinstance(item, dict) and item.get("url")
    ]
