"""Query augmentation and the indexed webpage framing fed to the chat model.

The `[webpage i begin] ... [webpage i end]` blocks are what the chat prompt
tells the model to cite as `[i]`, so the framing must stay exact.
"""
from __future__ import annotations

from typing import Sequence

from deepsexa.models.schemas import SearchResult
from deepsexa.services.prompt_store import render_prompt


def build_contextual_query(query: str, previous_queries: Sequence[str]) -> str:
    if not previous_queries:
        return query
    context = "\n".join(f"Previous question: {q}" for q in previous_queries)
    return f"{context}\n\nNow answer the question: {query}"


def _result_body(result: SearchResult) -> str:
    if result.summary:
        return f"Summary: {result.summary}"
    if result.highlights:
        return "Highlights:\n" + "\n".join(f"- {h}" for h in result.highlights)
    return f"Content: {result.text or ''}"


def format_result_block(index: int, result: SearchResult) -> str:
    lines = [f"[webpage {index} begin]", f"Title: {result.title}", f"URL: {result.url}"]
    if result.author:
        lines.append(f"Author: {result.author}")
    if result.published_date:
        lines.append(f"Date: {result.published_date}")
    lines.append(_result_body(result))
    lines.append(f"[webpage {index} end]")
    return "\n".join(lines)


def format_search_results(results: Sequence[SearchResult]) -> str:
    return "\n\n".join(format_result_block(i, r) for i, r in enumerate(results, start=1))


def build_search_context_message(results: Sequence[SearchResult]) -> str:
    """System message for the chat model; empty when there is nothing to cite."""
    if not results:
        return ""
    return render_prompt("chat.search_context", search_results=format_search_results(results))
