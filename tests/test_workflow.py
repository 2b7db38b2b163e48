import json

import pytest

from content_tools.errors import InvalidRequest, ParseFailure, UpstreamError
from content_tools.models import ArticleOutline, NewsArticle
from content_tools.workflow import (
    generate_article,
    generate_outline,
    generate_titles,
    lookup_news,
    lookup_suggestions,
    regenerate_section,
    word_budget,
)

from conftest import FakeResponse, FakeSession, MemoryStore, make_services


TITLES_REPLY = """Title: Space Tourism Gets Real
NewsScore: 80
SearchScore: 70
OverallScore: 75
Reasoning: Launch news plus cost searches.

Title: What a Ticket to Orbit Costs
NewsScore: 60
SearchScore: 90
OverallScore: 75
Reasoning: Matches price queries.
"""

OUTLINE = {
    "title": "Space Tourism Gets Real",
    "introduction": "Set the scene",
    "sections": [
        {"title": "Who Is Flying", "subSections": ["Billionaires", "Researchers"]},
        {"title": "What It Costs", "subSections": ["Tickets"]},
    ],
    "conclusion": "Look ahead",
}

ARTICLE = {
    "title": "Space Tourism Gets Real",
    "introduction": "Intro text",
    "sections": [
        {
            "title": "Who Is Flying",
            "content": "Body",
            "subSections": [{"title": "Billionaires", "content": "Text"}],
        }
    ],
    "conclusion": "Done",
}


def fake_news(topic, *, settings, session):
    return [NewsArticle(title=f"{topic} launch", description="Liftoff")]


def fake_suggest(topic, *, settings, session):
    return [f"{topic} cost"]


def test_generate_titles_builds_context_and_saves_history():
    store = MemoryStore()
    services = make_services(TITLES_REPLY, store=store)

    result = generate_titles(
        "space tourism", services, news_fn=fake_news, suggest_fn=fake_suggest
    )

    assert result.status == "ok"
    assert [t.title for t in result.titles] == [
        "Space Tourism Gets Real",
        "What a Ticket to Orbit Costs",
    ]
    prompt = services.llm.calls[0]["messages"][0]["content"]
    assert "space tourism launch" in prompt
    assert "- space tourism cost" in prompt
    assert services.llm.calls[0]["model"] == services.settings.title_model

    saved = store.records[0]
    assert saved.type == "title"
    assert saved.input == "space tourism"
    assert json.loads(saved.output)[0]["newsScore"] == 80
    assert saved.metadata["strategy"] == "labeled_blocks"


def test_generate_titles_survives_missing_context_and_history_failure():
    services = make_services(
        "Title: Orbit for All\nScore: 82\nReasoning: Timely.", store=MemoryStore(fail=True)
    )

    result = generate_titles(
        "orbit",
        services,
        news_fn=lambda *a, **k: [],
        suggest_fn=lambda *a, **k: [],
    )

    assert result.status == "partial"
    assert result.titles[0].score == 82
    assert result.warnings
    assert "(none found)" in services.llm.calls[0]["messages"][0]["content"]


def test_generate_titles_unparseable_reply_raises_with_preview():
    services = make_services("ok.", store=MemoryStore())

    with pytest.raises(ParseFailure) as excinfo:
        generate_titles("orbit", services, news_fn=fake_news, suggest_fn=fake_suggest)

    assert excinfo.value.raw_preview == "ok."
    assert services.store.records == []


def test_generate_titles_requires_topic():
    services = make_services()

    with pytest.raises(InvalidRequest):
        generate_titles("  ", services, news_fn=fake_news, suggest_fn=fake_suggest)
    assert services.llm.calls == []


def test_empty_completion_is_upstream_error():
    services = make_services("")

    with pytest.raises(UpstreamError):
        generate_outline("Title", "topic", services)


def test_generate_outline_saves_outline_history():
    store = MemoryStore()
    services = make_services("Outline:\n" + json.dumps(OUTLINE), store=store)

    outline = generate_outline("Space Tourism Gets Real", "space tourism", services, word_count=1500)

    assert outline.sections[1].title == "What It Costs"
    prompt = services.llm.calls[0]["messages"][0]["content"]
    assert "1500-word" in prompt
    saved = store.records[0]
    assert saved.type == "outline"
    assert saved.metadata["kind"] == "outline"
    assert json.loads(saved.output)["sections"][0]["subSections"] == ["Billionaires", "Researchers"]


def test_word_budget_weights_intro_and_conclusion():
    outline = ArticleOutline.model_validate(OUTLINE)

    budget = word_budget(outline, 2000)

    # 2 sections + 3 subsections + intro + conclusion
    assert budget.per_section == 2000 // 7
    assert budget.introduction == int(budget.per_section * 1.2)
    assert budget.conclusion == budget.introduction


def test_generate_article_uses_budget_and_records_kind():
    store = MemoryStore()
    services = make_services(json.dumps(ARTICLE), store=store)
    outline = ArticleOutline.model_validate(OUTLINE)

    article = generate_article(outline, "space tourism", services, word_count=2000)

    assert article.sections[0].sub_sections[0].title == "Billionaires"
    prompt = services.llm.calls[0]["messages"][0]["content"]
    assert "Subsection 1.2: Researchers" in prompt
    assert f"approximately {2000 // 7} words" in prompt
    saved = store.records[0]
    assert saved.type == "outline"
    assert saved.metadata["kind"] == "article"


def test_generate_article_bad_json_keeps_raw_content():
    services = make_services("The article is coming soon")
    outline = ArticleOutline.model_validate(OUTLINE)

    with pytest.raises(ParseFailure) as excinfo:
        generate_article(outline, "space tourism", services)

    assert excinfo.value.raw_preview == "The article is coming soon"


def test_regenerate_section_uses_section_model_and_fallbacks():
    services = make_services("[]")

    subsections = regenerate_section("prompt", "space", "Costs", services)

    assert subsections == [
        "Key aspects of Costs",
        "How Costs impacts your audience",
        "Best practices for Costs",
    ]
    assert services.llm.calls[0]["model"] == services.settings.section_model


def test_lookup_news_propagates_errors_and_saves_on_success():
    store = MemoryStore()
    services = make_services(
        store=store,
        http=FakeSession(FakeResponse(200, {"articles": [{"title": "Liftoff", "source": {}}]})),
    )

    articles = lookup_news("rockets", services)

    assert articles[0].title == "Liftoff"
    assert store.records[0].type == "news"

    failing = make_services(http=FakeSession(FakeResponse(401, {"message": "bad key"})))
    with pytest.raises(UpstreamError) as excinfo:
        lookup_news("rockets", failing)
    assert excinfo.value.status_code == 401


def test_lookup_suggestions_saves_suggestion_history():
    xml = b'<toplevel><CompleteSuggestion><suggestion data="rockets for sale"/></CompleteSuggestion></toplevel>'
    store = MemoryStore()
    services = make_services(store=store, http=FakeSession(FakeResponse(200, content=xml)))

    results = lookup_suggestions("rockets", services)

    assert results[0].title == "rockets for sale"
    assert store.records[0].type == "suggestion"
    assert json.loads(store.records[0].output)[0]["searchVolume"] == "Medium"
