"""News and search-suggestion providers used as prompt context."""

from __future__ import annotations

import logging
import random
import xml.etree.ElementTree as ET
from typing import Any, List, Optional

import requests

from .config import Settings, get_settings
from .errors import UpstreamError
from .models import NewsArticle, SearchResult

logger = logging.getLogger(__name__)

NEWS_PAGE_SIZE = 5

NEWS_TEMPLATES = (
    "Latest Trends in {query} for 2025",
    "How {query} is Transforming Business",
    "The Future of {query}: Expert Predictions",
    "Top 10 {query} Strategies That Work",
    "Why {query} Matters More Than Ever",
    "{query} Best Practices for Success",
)


def _to_news_article(raw: dict) -> NewsArticle:
    source = raw.get("source") or {}
    return NewsArticle(
        title=raw.get("title") or "",
        description=raw.get("description"),
        url=raw.get("url"),
        source_name=source.get("name") if isinstance(source, dict) else None,
        published_at=raw.get("publishedAt"),
    )


def _news_get(
    session: requests.Session, settings: Settings, endpoint: str, params: dict
) -> List[dict]:
    url = f"{settings.news_api_url.rstrip('/')}/{endpoint}"
    try:
        resp = session.get(
            url,
            params=params,
            headers={"X-Api-Key": settings.news_api_key or ""},
            timeout=settings.request_timeout,
        )
    except requests.RequestException as exc:
        raise UpstreamError(f"NewsAPI request failed: {exc}") from exc
    if not resp.ok:
        try:
            message = resp.json().get("message") or resp.text
        except (ValueError, AttributeError):
            message = resp.text
        raise UpstreamError(
            f"NewsAPI returned {resp.status_code}: {message}", status_code=resp.status_code
        )
    try:
        data: Any = resp.json()
    except ValueError as exc:
        raise UpstreamError(f"NewsAPI returned a non-JSON body from {endpoint}") from exc
    articles = data.get("articles") if isinstance(data, dict) else None
    if not isinstance(articles, list):
        return []
    return [item for item in articles if isinstance(item, dict)]


def fetch_news(
    topic: str,
    *,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> List[NewsArticle]:
    """
    Recent articles for a topic.

    Tries top headlines first; when none match, falls back to the
    relevancy-sorted ``everything`` endpoint.
    """
    settings = settings or get_settings()
    session = session or requests.Session()
    base = {"q": topic, "pageSize": NEWS_PAGE_SIZE, "language": "en"}

    raw = _news_get(session, settings, "top-headlines", base)
    if not raw:
        logger.info("No top headlines for %r; falling back to everything", topic)
        raw = _news_get(session, settings, "everything", {**base, "sortBy": "relevancy"})
    logger.info("Found %d news articles for %r", len(raw), topic)
    return [_to_news_article(item) for item in raw if item.get("title")]


def fetch_news_quietly(topic: str, **kwargs) -> List[NewsArticle]:
    """News for prompt context; an outage only means a thinner prompt."""
    try:
        return fetch_news(topic, **kwargs)
    except UpstreamError as exc:
        logger.warning("Skipping news context for %r: %s", topic, exc)
        return []


def parse_suggestion_xml(payload: str | bytes) -> List[str]:
    """Extract completions from the Google Suggest toolbar XML."""
    root = ET.fromstring(payload)
    suggestions: List[str] = []
    for node in root.findall("./CompleteSuggestion/suggestion"):
        data = (node.get("data") or "").strip()
        if data:
            suggestions.append(data)
    return suggestions


def fetch_search_suggestions(
    query: str,
    *,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> List[str]:
    settings = settings or get_settings()
    session = session or requests.Session()
    try:
        resp = session.get(
            settings.suggest_url,
            params={"output": "toolbar", "hl": "en", "q": query},
            headers={"Accept": "application/xml"},
            timeout=settings.request_timeout,
        )
    except requests.RequestException as exc:
        raise UpstreamError(f"Suggest request failed: {exc}") from exc
    if not resp.ok:
        raise UpstreamError(
            f"Suggest endpoint returned {resp.status_code}", status_code=resp.status_code
        )
    try:
        return parse_suggestion_xml(resp.content)
    except ET.ParseError as exc:
        raise UpstreamError(f"Suggest endpoint returned malformed XML: {exc}") from exc


def fetch_search_suggestions_quietly(query: str, **kwargs) -> List[str]:
    try:
        return fetch_search_suggestions(query, **kwargs)
    except UpstreamError as exc:
        logger.warning("Skipping search context for %r: %s", query, exc)
        return []


def build_search_results(
    query: str, suggestions: List[str], rng: Optional[random.Random] = None
) -> List[SearchResult]:
    """Google completions first, then news-style template titles."""
    rng = rng or random.Random()
    results = [
        SearchResult(title=title, source="google", search_volume="Medium", competition="Low")
        for title in suggestions
    ]
    results.extend(
        SearchResult(
            title=template.format(query=query),
            source="news",
            search_volume="High",
            competition="Low" if rng.random() > 0.5 else "Medium",
        )
        for template in NEWS_TEMPLATES
    )
    return results
