import random

import pytest

from content_tools.errors import UpstreamError
from content_tools.research import (
    NEWS_TEMPLATES,
    build_search_results,
    fetch_news,
    fetch_news_quietly,
    fetch_search_suggestions,
    fetch_search_suggestions_quietly,
    parse_suggestion_xml,
)

from conftest import FakeResponse, FakeSession, make_settings


SUGGEST_XML = b"""<?xml version="1.0"?>
<toplevel>
  <CompleteSuggestion><suggestion data="space tourism cost"/></CompleteSuggestion>
  <CompleteSuggestion><suggestion data="space tourism companies"/></CompleteSuggestion>
  <CompleteSuggestion><suggestion data=" "/></CompleteSuggestion>
</toplevel>"""


def article(title, **extra):
    return {
        "title": title,
        "description": f"About {title}",
        "url": "https://news.example.com/a",
        "source": {"name": "Wire"},
        "publishedAt": "2025-03-01T00:00:00Z",
        **extra,
    }


def test_fetch_news_uses_top_headlines_first():
    session = FakeSession(FakeResponse(200, {"articles": [article("Launch day")]}))

    articles = fetch_news("space", settings=make_settings(), session=session)

    assert [a.title for a in articles] == ["Launch day"]
    assert articles[0].source_name == "Wire"
    assert len(session.calls) == 1
    call = session.calls[0]
    assert call["url"].endswith("/top-headlines")
    assert call["params"]["pageSize"] == 5
    assert call["headers"]["X-Api-Key"] == "news-key"


def test_fetch_news_falls_back_to_everything():
    session = FakeSession(
        FakeResponse(200, {"articles": []}),
        FakeResponse(200, {"articles": [article("Deep dive"), {"title": None}]}),
    )

    articles = fetch_news("space", settings=make_settings(), session=session)

    assert [a.title for a in articles] == ["Deep dive"]
    assert session.calls[1]["url"].endswith("/everything")
    assert session.calls[1]["params"]["sortBy"] == "relevancy"


def test_fetch_news_error_carries_status():
    session = FakeSession(FakeResponse(429, {"message": "rate limited"}))

    with pytest.raises(UpstreamError) as excinfo:
        fetch_news("space", settings=make_settings(), session=session)

    assert excinfo.value.status_code == 429
    assert "rate limited" in str(excinfo.value)


def test_fetch_news_quietly_returns_empty_on_error():
    session = FakeSession(FakeResponse(500, None, text="boom"))

    assert fetch_news_quietly("space", settings=make_settings(), session=session) == []


def test_parse_suggestion_xml_skips_blank_entries():
    assert parse_suggestion_xml(SUGGEST_XML) == [
        "space tourism cost",
        "space tourism companies",
    ]


def test_fetch_search_suggestions_sends_toolbar_query():
    session = FakeSession(FakeResponse(200, content=SUGGEST_XML))

    suggestions = fetch_search_suggestions("space tourism", settings=make_settings(), session=session)

    assert suggestions[0] == "space tourism cost"
    assert session.calls[0]["params"] == {"output": "toolbar", "hl": "en", "q": "space tourism"}


def test_malformed_suggestion_xml_is_quietly_ignored():
    session = FakeSession(FakeResponse(200, content=b"<toplevel><oops"))

    assert fetch_search_suggestions_quietly("x", settings=make_settings(), session=session) == []


def test_build_search_results_orders_google_before_templates():
    results = build_search_results("AI", ["ai tools"], rng=random.Random(1))

    assert results[0].source == "google"
    assert results[0].search_volume == "Medium"
    assert len(results) == 1 + len(NEWS_TEMPLATES)
    assert all(r.source == "news" and r.search_volume == "High" for r in results[1:])
    assert results[1].title == NEWS_TEMPLATES[0].format(query="AI")
    assert {r.competition for r in results[1:]} <= {"Low", "Medium"}


def test_fetch_news_non_json_body_is_upstream_error():
    session = FakeSession(FakeResponse(200, None, text="<html>oops</html>"))

    with pytest.raises(UpstreamError):
        fetch_news("space", settings=make_settings(), session=session)


def test_fetch_news_quietly_ignores_non_json_body():
    session = FakeSession(FakeResponse(200, None, text="<html>oops</html>"))

    assert fetch_news_quietly("space", settings=make_settings(), session=session) == []


def test_fetch_news_skips_non_object_articles():
    session = FakeSession(
        FakeResponse(200, {"articles": ["junk", None, article("Real story")]})
    )

    articles = fetch_news("space", settings=make_settings(), session=session)

    assert [a.title for a in articles] == ["Real story"]
