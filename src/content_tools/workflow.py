"""Generation workflow for the content tools.

Each step is one outbound LLM call wrapped by prompt building, response
normalization and a best-effort history write:

- titles (news + search context -> scored suggestions)
- outline (title + topic -> sections/subsections)
- article (outline -> full text, with a per-section word budget)
- section regeneration (one outline section -> new subsection titles)

Every function takes a ``Services`` bundle built once at start-up, so tests can
pass fake clients and stores instead of touching the network.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

import requests
from openai import OpenAI

from .config import Settings, get_settings
from .errors import InvalidRequest, ParseFailure
from .history import HistoryStore, build_history_store, dumps_output, save_quietly
from .llm import build_client, complete
from .models import (
    Article,
    ArticleOutline,
    HistoryRecord,
    NewsArticle,
    SearchResult,
    TitleSuggestion,
)
from .normalizer import (
    Failed,
    Ok,
    normalize_title_suggestions,
    parse_article,
    parse_outline,
    parse_subsections,
)
from .research import (
    build_search_results,
    fetch_news,
    fetch_news_quietly,
    fetch_search_suggestions,
    fetch_search_suggestions_quietly,
)

logger = logging.getLogger(__name__)

DEFAULT_WORD_COUNT = 2000
INTRO_WEIGHT = 1.2

NewsFn = Callable[..., List[NewsArticle]]
SuggestFn = Callable[..., List[str]]


# --- Data containers -------------------------------------------------------

@dataclass
class Services:
    """Collaborators shared by every request; constructed once per process."""

    settings: Settings
    llm: OpenAI
    store: Optional[HistoryStore]
    http: requests.Session = field(default_factory=requests.Session)


@dataclass
class TitleGenerationResult:
    topic: str
    titles: List[TitleSuggestion]
    status: str
    strategy: str
    warnings: List[str] = field(default_factory=list)


@dataclass
class WordBudget:
    total: int
    per_section: int
    introduction: int
    conclusion: int


def build_services(settings: Optional[Settings] = None) -> Services:
    settings = settings or get_settings()
    return Services(
        settings=settings,
        llm=build_client(settings),
        store=build_history_store(settings),
    )


def _require(value, message: str):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRequest(message)
    return value


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Prompts --------------------------------------------------------------

def build_titles_prompt(
    topic: str, articles: List[NewsArticle], suggestions: List[str]
) -> str:
    news_context = ""
    if articles:
        news_context = "\n" + "\n".join(
            f"- {a.title}\n  {a.description or ''}" for a in articles
        )
    search_context = ""
    if suggestions:
        search_context = "\n" + "\n".join(f"- {s}" for s in suggestions)

    return (
        "You are a blog title expert. Generate 10 engaging, SEO-optimized blog titles "
        f'for the topic: "{topic}".\n\n'
        f"Here are some recent news articles about this topic:{news_context or ' (none found)'}\n\n"
        f"Here are popular Google searches related to this topic:{search_context or ' (none found)'}\n\n"
        "For each title:\n"
        "1. Make it attention-grabbing and unique by combining insights from both news "
        "articles and search trends\n"
        "2. Consider SEO best practices and incorporate high-performing search terms\n"
        "3. Aim for high click-through rates by addressing current user interests\n\n"
        "Format each title as its own block, separated by a blank line:\n"
        "Title: [The Title]\n"
        "NewsScore: [1-100] (relevance to current news and trending topics)\n"
        "SearchScore: [1-100] (search volume and keyword optimization)\n"
        "OverallScore: [1-100] (the average of NewsScore and SearchScore)\n"
        "Reasoning: [How the title combines news angles with search trends]\n"
    )


def build_outline_prompt(title: str, topic: str, word_count: int) -> str:
    return (
        "You are a professional content outline creator. Create a detailed outline for a "
        f'{word_count}-word blog article with the title: "{title}" about the topic: "{topic}".\n\n'
        "The outline should include:\n"
        "1. An engaging introduction (summarize what this will cover)\n"
        "2. 4-6 main sections with descriptive headings\n"
        "3. 2-3 subsections under each main section\n"
        "4. A conclusion section\n\n"
        "Format the response as a JSON object with this structure:\n"
        "{\n"
        '  "title": "The exact title provided",\n'
        '  "introduction": "Brief description of what the introduction should cover",\n'
        '  "sections": [\n'
        '    {"title": "Section 1 Title", "subSections": ["Subsection 1.1 Title", "Subsection 1.2 Title"]}\n'
        "  ],\n"
        '  "conclusion": "Brief description of what the conclusion should cover"\n'
        "}\n\n"
        "Make sure each section and subsection title is descriptive, engaging, and "
        "SEO-friendly. The outline should flow logically and cover the topic comprehensively."
    )


def word_budget(outline: ArticleOutline, word_count: int) -> WordBudget:
    """Split the target length evenly across every heading, intro and conclusion weighted up."""
    per_section = word_count // outline.section_count()
    weighted = int(per_section * INTRO_WEIGHT)
    return WordBudget(
        total=word_count,
        per_section=per_section,
        introduction=weighted,
        conclusion=weighted,
    )


def build_article_prompt(outline: ArticleOutline, topic: str, budget: WordBudget) -> str:
    section_lines: List[str] = []
    for i, section in enumerate(outline.sections, start=1):
        section_lines.append(f"Section {i}: {section.title}")
        section_lines.extend(
            f"- Subsection {i}.{j}: {sub}" for j, sub in enumerate(section.sub_sections, start=1)
        )
        section_lines.append("")

    return (
        f"You are a professional blog writer. Write a {budget.total}-word blog article based "
        f'on the following outline about the topic: "{topic}".\n\n'
        f"TITLE: {outline.title}\n\n"
        "OUTLINE:\n"
        f"Introduction: {outline.introduction} (approximately {budget.introduction} words)\n\n"
        + "\n".join(section_lines)
        + f"\nConclusion: {outline.conclusion} (approximately {budget.conclusion} words)\n\n"
        "FORMAT INSTRUCTIONS:\n"
        "1. Write the full article following the exact structure of the outline\n"
        "2. For each section and subsection, include the exact title from the outline\n"
        "3. Format the response as a JSON object with this structure:\n"
        "{\n"
        '  "title": "The exact title",\n'
        '  "introduction": "Full introduction text",\n'
        '  "sections": [\n'
        '    {"title": "Section 1 Title", "content": "Main section content",\n'
        '     "subSections": [{"title": "Subsection 1.1 Title", "content": "Subsection content"}]}\n'
        "  ],\n"
        '  "conclusion": "Full conclusion text"\n'
        "}\n\n"
        "WRITING GUIDELINES:\n"
        "- Make the content engaging, informative, and well-researched\n"
        "- Use a conversational but professional tone\n"
        f"- Aim for approximately {budget.per_section} words for each main section "
        "and each subsection\n"
    )


def build_section_prompt(topic: str, section_title: str, current: List[str]) -> str:
    """Default prompt for regenerating one section when the caller has none."""
    existing = "\n".join(f"- {s}" for s in current) or "- (none)"
    return (
        f'Suggest 3 fresh subsection titles for the section "{section_title}" of a blog '
        f'article about "{topic}".\n\nCurrent subsections:\n{existing}\n\n'
        'Respond with a JSON array of strings only, e.g. ["First", "Second", "Third"].'
    )


# --- Steps ----------------------------------------------------------------

def generate_titles(
    topic: str,
    services: Services,
    *,
    news_fn: NewsFn | None = None,
    suggest_fn: SuggestFn | None = None,
) -> TitleGenerationResult:
    """
    Scored title suggestions for a topic.

    News and search context are best effort; the LLM call and parsing are not.
    Raises ParseFailure when no title can be recovered from the completion.
    """
    _require(topic, "Topic is required")
    settings = services.settings
    news_fn = news_fn or fetch_news_quietly
    suggest_fn = suggest_fn or fetch_search_suggestions_quietly

    articles = news_fn(topic, settings=settings, session=services.http)
    suggestions = suggest_fn(topic, settings=settings, session=services.http)
    prompt = build_titles_prompt(topic, articles, suggestions)
    content = complete(services.llm, prompt, model=settings.title_model, step="Titles")

    parsed = normalize_title_suggestions(content, topic)
    if isinstance(parsed, Failed):
        logger.error("Failed to parse titles for %r: %s", topic, parsed.reason)
        raise ParseFailure(f"Failed to parse titles from AI response: {parsed.reason}", content)

    warnings = [] if isinstance(parsed, Ok) else parsed.warnings
    result = TitleGenerationResult(
        topic=topic,
        titles=parsed.records,
        status="ok" if isinstance(parsed, Ok) else "partial",
        strategy=parsed.strategy,
        warnings=warnings,
    )
    save_quietly(
        services.store,
        HistoryRecord(
            input=topic,
            output=dumps_output([t.model_dump(by_alias=True) for t in result.titles]),
            type="title",
            metadata={
                "kind": "titles",
                "model": settings.title_model,
                "strategy": result.strategy,
                "warnings": len(warnings),
                "newsArticles": len(articles),
                "searchSuggestions": len(suggestions),
                "timestamp": _now_iso(),
            },
        ),
    )
    return result


def generate_outline(
    title: str,
    topic: str,
    services: Services,
    *,
    word_count: int = DEFAULT_WORD_COUNT,
) -> ArticleOutline:
    _require(title, "Title is required")
    _require(topic, "Topic is required")
    settings = services.settings
    prompt = build_outline_prompt(title, topic, word_count)
    content = complete(services.llm, prompt, model=settings.outline_model, step="Outline")
    outline = parse_outline(content)
    logger.info("Parsed outline for %r with %d sections", title, len(outline.sections))

    save_quietly(
        services.store,
        HistoryRecord(
            input=f"{title} - {topic}",
            output=outline.model_dump_json(by_alias=True),
            type="outline",
            metadata={
                "kind": "outline",
                "title": title,
                "topic": topic,
                "wordCount": word_count,
                "model": settings.outline_model,
                "timestamp": _now_iso(),
            },
        ),
    )
    return outline


def generate_article(
    outline: ArticleOutline,
    topic: str,
    services: Services,
    *,
    word_count: int = DEFAULT_WORD_COUNT,
) -> Article:
    _require(outline, "Valid outline is required")
    _require(topic, "Topic is required")
    settings = services.settings
    budget = word_budget(outline, word_count)
    prompt = build_article_prompt(outline, topic, budget)
    content = complete(services.llm, prompt, model=settings.article_model, step="Article")
    article = parse_article(content)
    logger.info("Parsed article %r with %d sections", article.title, len(article.sections))

    save_quietly(
        services.store,
        HistoryRecord(
            input=f"{article.title} - {topic}",
            output=dumps_output(
                {
                    "title": article.title,
                    "wordCount": word_count,
                    "sectionCount": len(article.sections),
                }
            ),
            type="outline",
            metadata={
                "kind": "article",
                "title": article.title,
                "topic": topic,
                "wordCount": word_count,
                "model": settings.article_model,
                "timestamp": _now_iso(),
            },
        ),
    )
    return article


def regenerate_section(
    prompt: str,
    topic: str,
    section_title: str,
    services: Services,
) -> List[str]:
    """New subsection titles for one section; parsing never fails (fallbacks)."""
    _require(prompt, "Prompt is required")
    _require(topic, "Topic is required")
    _require(section_title, "Section title is required")
    content = complete(
        services.llm, prompt, model=services.settings.section_model, step="Section"
    )
    return parse_subsections(content, section_title)


def lookup_news(query: str, services: Services) -> List[NewsArticle]:
    """News for the research view; unlike prompt context, errors propagate."""
    _require(query, "Query parameter is required")
    articles = fetch_news(query, settings=services.settings, session=services.http)
    save_quietly(
        services.store,
        HistoryRecord(
            input=query,
            output=dumps_output([a.model_dump(by_alias=True) for a in articles]),
            type="news",
            metadata={"count": len(articles), "timestamp": _now_iso()},
        ),
    )
    return articles


def lookup_suggestions(query: str, services: Services) -> List[SearchResult]:
    _require(query, "Query parameter is required")
    suggestions = fetch_search_suggestions(
        query, settings=services.settings, session=services.http
    )
    results = build_search_results(query, suggestions)
    save_quietly(
        services.store,
        HistoryRecord(
            input=query,
            output=dumps_output([r.model_dump(by_alias=True) for r in results]),
            type="suggestion",
            metadata={"google": len(suggestions), "timestamp": _now_iso()},
        ),
    )
    return results
