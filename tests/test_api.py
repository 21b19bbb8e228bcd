"""Tests for API routes."""
from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from deepsexa.llm_client import Usage
from deepsexa.models.schemas import DateRangeResponse, SearchResult, WebpageSummary


@pytest.fixture
def app():
    from deepsexa.main import app, rate_limiter

    rate_limiter.reset()
    yield app
    rate_limiter.reset()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)


class FakeChatStream:
    def __init__(self, chunks):
        self.chunks = chunks

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return None

    @property
    def text_stream(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self.chunks:
            yield chunk

    async def get_usage(self):
        return Usage(input_tokens=10, output_tokens=5)


def date_range_response(start="2024-01-01", end="2024-03-31"):
    return DateRangeResponse.model_validate(
        {"dateRange": {"startDate": start, "endDate": end, "rationale": "Q1"}, "confidence": "high"}
    )


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "deepsexa"


def test_health_is_not_rate_limited(client):
    from deepsexa.main import rate_limiter

    for _ in range(rate_limiter.max_requests + 5):
        assert client.get("/api/health").status_code == 200


def test_requests_over_limit_get_429(client):
    from deepsexa.main import rate_limiter

    with patch(
        "deepsexa.tools.date_parser.parse_date_range",
        AsyncMock(return_value=date_range_response()),
    ):
        statuses = [
            client.post("/api/parse-date", json={"query": "q"}).status_code
            for _ in range(rate_limiter.max_requests)
        ]
        rejected = client.post("/api/parse-date", json={"query": "q"})

    assert statuses == [200] * rate_limiter.max_requests
    assert rejected.status_code == 429
    assert rejected.json() == {"error": "Too many requests"}
    assert 1 <= int(rejected.headers["Retry-After"]) <= 60


def test_search_uses_contextual_query(client):
    mock_search = AsyncMock(
        return_value=[SearchResult(url="https://a.example", title="A", published_date="2024-01-01")]
    )
    with patch("deepsexa.tools.exa_search.search", mock_search):
        response = client.post(
            "/api/search",
            json={"query": "and pricing?", "previousQueries": ["what is exa"], "settings": {"numResults": 2}},
        )

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["url"] == "https://a.example"
    assert results[0]["publishedDate"] == "2024-01-01"

    query, search_settings = mock_search.call_args.args
    assert query == "Previous question: what is exa\n\nNow answer the question: and pricing?"
    assert search_settings.num_results == 2


def test_search_failure_returns_error_body(client):
    with patch("deepsexa.tools.exa_search.search", AsyncMock(side_effect=RuntimeError("quota"))):
        response = client.post("/api/search", json={"query": "q"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to perform search | quota"}


@pytest.mark.parametrize(
    "body",
    [
        {"query": ""},
        {"query": "   "},
        {"query": "q", "settings": {"numResults": 11}},
        {"query": "q", "settings": {"contents": {"mode": "video"}}},
    ],
)
def test_search_rejects_invalid_requests(client, body):
    with patch("deepsexa.tools.exa_search.search", AsyncMock()) as mock_search:
        response = client.post("/api/search", json=body)

    assert response.status_code == 422
    mock_search.assert_not_called()


def test_parse_date_returns_camel_case_range(client):
    with patch(
        "deepsexa.tools.date_parser.parse_date_range",
        AsyncMock(return_value=date_range_response(end=None)),
    ):
        response = client.post("/api/parse-date", json={"query": "since 2024"})

    assert response.status_code == 200
    data = response.json()
    assert data["dateRange"]["startDate"] == "2024-01-01"
    assert data["dateRange"]["endDate"] is None
    assert data["confidence"] == "high"


def test_parse_date_failure(client):
    with patch(
        "deepsexa.tools.date_parser.parse_date_range",
        AsyncMock(side_effect=ValueError("bad json")),
    ):
        response = client.post("/api/parse-date", json={"query": "q"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to parse date range"}


def test_summarize_returns_summary(client):
    summary = WebpageSummary.model_validate(
        {
            "metadata": {"title": "T", "url": "https://a.example", "publishedDate": "2024"},
            "summary": "short",
            "relevance": {"queryRelevance": "9", "timelinessScore": "4", "conversationFlow": "c"},
        }
    )
    with patch("deepsexa.tools.page_summarizer.summarize_page", AsyncMock(return_value=summary)):
        response = client.post(
            "/api/summarize", json={"text": "body", "query": "q", "previousQueries": ["p"]}
        )

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == "short"
    assert data["metadata"]["publishedDate"] == "2024"
    assert data["relevance"]["queryRelevance"] == "9"


def test_summarize_failure(client):
    with patch(
        "deepsexa.tools.page_summarizer.summarize_page",
        AsyncMock(side_effect=RuntimeError("OPENAI_API_KEY is not configured")),
    ):
        response = client.post("/api/summarize", json={"text": "body", "query": "q"})

    assert response.status_code == 500
    assert response.json() == {"error": "OPENAI_API_KEY is not configured"}


def test_chat_streams_tokens_with_filtered_messages(client):
    fake_stream = FakeChatStream(["<think>a", "</think>", "b"])
    with patch("deepsexa.api.routes.chat.get_chat_client", return_value=MagicMock()), patch(
        "deepsexa.api.routes.chat.stream_chat", return_value=fake_stream
    ) as mock_stream_chat:
        response = client.post(
            "/api/chat",
            json={
                "messages": [
                    {"role": "system", "content": "stale context"},
                    {"role": "user", "content": "hi"},
                    {"role": "system", "content": "fresh context"},
                ]
            },
        )

    assert response.status_code == 200
    assert "event: token" in response.text
    assert "event: done" in response.text

    tokens = []
    for line in response.text.splitlines():
        if line.startswith("data:"):
            payload = json.loads(line[len("data:"):].strip())
            if "text" in payload:
                tokens.append(payload["text"])
    assert "".join(tokens) == "<think>a</think>b"

    messages = mock_stream_chat.call_args.kwargs["messages"]
    assert messages == [
        {"role": "user", "content": "hi"},
        {"role": "system", "content": "fresh context"},
    ]


@pytest.mark.asyncio
async def test_chat_events_report_errors():
    from deepsexa.api.routes.chat import chat_events

    with patch(
        "deepsexa.api.routes.chat.get_chat_client",
        side_effect=RuntimeError("CHAT_API_KEY is not configured"),
    ):
        events = [event async for event in chat_events([{"role": "user", "content": "hi"}])]

    assert [e["event"] for e in events] == ["error"]
    data = json.loads(events[0]["data"])
    assert data["message"] == "CHAT_API_KEY is not configured"
    assert data["details"] == "Check server logs for more information"


@pytest.mark.asyncio
async def test_chat_events_end_with_done():
    from deepsexa.api.routes.chat import chat_events

    with patch("deepsexa.api.routes.chat.get_chat_client", return_value=MagicMock()), patch(
        "deepsexa.api.routes.chat.stream_chat", return_value=FakeChatStream(["x"])
    ):
        events = [event async for event in chat_events([{"role": "user", "content": "hi"}])]

    assert [e["event"] for e in events] == ["token", "done"]
    assert json.loads(events[-1]["data"])["tokens_used"] == 15


def test_chat_requires_messages(client):
    response = client.post("/api/chat", json={"messages": []})

    assert response.status_code == 422
