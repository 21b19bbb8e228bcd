from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from deepsexa.models.schemas import (
    ExternalSummaryContent,
    HighlightsContent,
    SearchRequest,
    SearchResult,
    SearchSettings,
    SummaryContent,
    TextContent,
    WebpageSummary,
)


@pytest.mark.parametrize("num_results", [0, 11])
def test_num_results_out_of_range_is_rejected(num_results):
    with pytest.raises(ValidationError):
        SearchSettings(num_results=num_results)


def test_settings_accept_camel_case_aliases():
    s = SearchSettings.model_validate({"numResults": 10, "startPublishedDate": "2024-01-01"})

    assert s.num_results == 10
    assert s.start_published_date == date(2024, 1, 1)


def test_contents_variant_selected_by_mode():
    s = SearchSettings.model_validate({"contents": {"mode": "highlights", "num_sentences": 2}})

    assert isinstance(s.contents, HighlightsContent)
    assert s.contents.num_sentences == 2


def test_unknown_contents_mode_is_rejected():
    with pytest.raises(ValidationError):
        SearchSettings.model_validate({"contents": {"mode": "video"}})


def test_custom_model_mode_derives_from_contents():
    assert not SearchSettings().custom_model_mode
    assert SearchSettings(contents=ExternalSummaryContent()).custom_model_mode


def test_with_date_range_returns_new_settings():
    original = SearchSettings()

    updated = original.with_date_range(date(2024, 4, 1), date(2024, 6, 30))

    assert original.start_published_date is None
    assert updated.start_published_date == date(2024, 4, 1)
    assert updated.end_published_date == date(2024, 6, 30)


def test_settings_are_frozen():
    with pytest.raises(ValidationError):
        SearchSettings().num_results = 3


def test_exa_payload_for_text_contents():
    s = SearchSettings(
        type="neural",
        num_results=3,
        livecrawl="fallback",
        contents=TextContent(max_characters=3000),
        include_domains=["arxiv.org"],
    ).with_date_range(date(2024, 1, 1), None)

    payload = s.to_exa_payload("llm agents")

    assert payload == {
        "query": "llm agents",
        "type": "neural",
        "numResults": 3,
        "contents": {"livecrawl": "fallback", "text": {"maxCharacters": 3000}},
        "includeDomains": ["arxiv.org"],
        "startPublishedDate": "2024-01-01",
    }


def test_exa_payload_for_highlights_and_summary():
    highlights = SearchSettings(contents=HighlightsContent(query="key facts")).to_exa_payload("q")
    summary = SearchSettings(contents=SummaryContent()).to_exa_payload("q")

    assert highlights["contents"]["highlights"] == {
        "numSentences": 3,
        "highlightsPerUrl": 1,
        "query": "key facts",
    }
    assert summary["contents"]["summary"] is True


def test_search_result_accepts_exa_shape():
    result = SearchResult.model_validate(
        {
            "url": "https://example.com",
            "title": None,
            "publishedDate": "2024-02-02T00:00:00.000Z",
            "somethingNew": 1,
        }
    )

    assert result.title == ""
    assert result.published_date == "2024-02-02T00:00:00.000Z"


@pytest.mark.parametrize("query", ["", "   "])
def test_search_request_rejects_blank_query(query):
    with pytest.raises(ValidationError):
        SearchRequest(query=query)


def test_webpage_summary_scores_are_bounded_strings():
    payload = {
        "metadata": {"title": "T", "url": "https://example.com", "publishedDate": "2024"},
        "summary": "S",
        "relevance": {"queryRelevance": "11", "timelinessScore": "5", "conversationFlow": "c"},
    }

    with pytest.raises(ValidationError):
        WebpageSummary.model_validate(payload)

    payload["relevance"]["queryRelevance"] = "10"
    assert WebpageSummary.model_validate(payload).relevance.query_relevance == "10"
