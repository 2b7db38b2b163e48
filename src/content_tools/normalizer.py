"""Turn free-form LLM completions into structured records.

Title suggestions go through an ordered chain of named strategies:

- ``json``: the completion is (or contains) a JSON array of objects with a title
- ``labeled_blocks``: ``Title:`` / ``NewsScore:`` / ``SearchScore:`` /
  ``OverallScore:`` / ``Reasoning:`` blocks with every score recoverable
- ``relaxed_blocks``: the same blocks, accepting anything that carries a title
- ``title_lines``: a last-resort scrape of lines that look like headlines

The first strategy that recovers at least one record wins. Nothing in here
raises on bad text; callers receive ``Ok``, ``PartialOk`` or ``Failed``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Tuple, Union

from .errors import ParseFailure, preview
from .models import Article, ArticleOutline, TitleSuggestion
from .schema import validate_payload

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 70
MAX_SUBSECTIONS = 3


# --- Parse results ----------------------------------------------------------

@dataclass
class Ok:
    records: List[TitleSuggestion]
    strategy: str


@dataclass
class PartialOk:
    records: List[TitleSuggestion]
    warnings: List[str]
    strategy: str


@dataclass
class Failed:
    reason: str
    raw_preview: str = ""


ParseResult = Union[Ok, PartialOk, Failed]

StrategyOutcome = Tuple[List[TitleSuggestion], List[str]]
Strategy = Callable[[str, str], Optional[StrategyOutcome]]


def overall_score(news_score: int, search_score: int) -> int:
    """Overall score used whenever the model did not supply one: plain mean."""
    return int(round((news_score + search_score) / 2))


def default_reasoning(topic: str) -> str:
    subject = topic.strip() or "this topic"
    return f"Suggested headline angle for {subject}; the model gave no reasoning."


def _clamp(value: float) -> int:
    return max(0, min(100, int(round(value))))


def _coerce_score(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return _clamp(raw)
    if isinstance(raw, str):
        match = re.search(r"\d+(?:\.\d+)?", raw)
        if match:
            return _clamp(float(match.group(0)))
    return None


def _clean_title(raw: str) -> str:
    title = raw.strip().replace("**", "").replace("__", "")
    if len(title) >= 2 and title[0] == "[" and title[-1] == "]":
        title = title[1:-1]
    return title.strip().strip("\"'“”‘’").strip()


def _build_record(
    title: str,
    news: Optional[int],
    search: Optional[int],
    overall: Optional[int],
    reasoning: str,
    topic: str,
    warnings: List[str],
) -> TitleSuggestion:
    if news is None:
        warnings.append(f"'{title}': newsScore missing, defaulted to {DEFAULT_SCORE}")
        news = DEFAULT_SCORE
    if search is None:
        warnings.append(f"'{title}': searchScore missing, defaulted to {DEFAULT_SCORE}")
        search = DEFAULT_SCORE
    if overall is None:
        overall = overall_score(news, search)
        warnings.append(f"'{title}': overall score computed as mean ({overall})")
    if not reasoning.strip():
        warnings.append(f"'{title}': reasoning missing")
        reasoning = default_reasoning(topic)
    return TitleSuggestion(
        title=title,
        news_score=news,
        search_score=search,
        score=overall,
        reasoning=reasoning.strip(),
    )


# --- Strategy 1: JSON array ---------------------------------------------------

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")


def _load_json_candidates(text: str) -> Any:
    candidates = [text.strip()]
    fence = _FENCE_PATTERN.search(text)
    if fence:
        candidates.append(fence.group(1).strip())
    array = _ARRAY_PATTERN.search(text)
    if array:
        candidates.append(array.group(0))
    for candidate in candidates:
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def _first_present(item: dict, *keys: str) -> Any:
    for key in keys:
        if key in item and item[key] is not None:
            return item[key]
    return None


def parse_json_array(text: str, topic: str) -> Optional[StrategyOutcome]:
    data = _load_json_candidates(text)
    if isinstance(data, dict):
        data = _first_present(data, "titles", "suggestions", "results")
    if not isinstance(data, list):
        return None

    records: List[TitleSuggestion] = []
    warnings: List[str] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        raw_title = item.get("title")
        if not isinstance(raw_title, str) or not raw_title.strip():
            continue
        title = _clean_title(raw_title)
        records.append(
            _build_record(
                title,
                _coerce_score(_first_present(item, "newsScore", "news_score")),
                _coerce_score(_first_present(item, "searchScore", "search_score")),
                _coerce_score(
                    _first_present(item, "score", "overallScore", "overall_score")
                ),
                str(item.get("reasoning") or ""),
                topic,
                warnings,
            )
        )
    if not records:
        return None
    return records, warnings


# --- Strategies 2 & 3: labeled blocks -----------------------------------------

_SEPARATOR_PATTERN = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,}|={3,})\s*$")
_DECORATION_PATTERN = re.compile(r"^\s*(?:#{1,6}\s*|[-*•]\s+|\d+\s*[.)]\s*)+")
_FIELD_PATTERN = re.compile(
    r"^(title|news\s*score|search\s*score|overall\s*score|score|reasoning)\s*:\s*(.*)$",
    re.IGNORECASE,
)
_FIELD_KEYS = {
    "title": "title",
    "newsscore": "news",
    "searchscore": "search",
    "overallscore": "overall",
    "score": "overall",
    "reasoning": "reasoning",
}


@dataclass
class _Draft:
    title: str = ""
    news: Optional[int] = None
    search: Optional[int] = None
    overall: Optional[int] = None
    reasoning: List[str] = field(default_factory=list)

    def is_complete(self) -> bool:
        if not self.title:
            return False
        return self.overall is not None or (
            self.news is not None and self.search is not None
        )


def _strip_decorations(line: str) -> str:
    unemphasized = line.strip().replace("**", "").replace("__", "")
    return _DECORATION_PATTERN.sub("", unemphasized).strip()


def _match_field(line: str) -> Optional[Tuple[str, str]]:
    match = _FIELD_PATTERN.match(_strip_decorations(line))
    if not match:
        return None
    key = re.sub(r"\s+", "", match.group(1).lower())
    return _FIELD_KEYS[key], match.group(2).strip()


def _split_blocks(text: str) -> List[List[str]]:
    blocks: List[List[str]] = []
    current: List[str] = []
    for line in text.splitlines():
        if not line.strip() or _SEPARATOR_PATTERN.match(line):
            if current:
                blocks.append(current)
                current = []
            continue
        current.append(line)
    if current:
        blocks.append(current)
    return blocks


def _drafts_from_block(lines: List[str]) -> List[_Draft]:
    drafts: List[_Draft] = []
    draft: Optional[_Draft] = None
    in_reasoning = False
    for line in lines:
        matched = _match_field(line)
        if matched is None:
            if in_reasoning and draft is not None:
                draft.reasoning.append(_strip_decorations(line))
            continue
        key, value = matched
        in_reasoning = False
        if key == "title":
            if draft is not None and not draft.title:
                # Scores listed above the title belong to it.
                draft.title = _clean_title(value)
            else:
                draft = _Draft(title=_clean_title(value))
                drafts.append(draft)
            continue
        if draft is None:
            draft = _Draft()
            drafts.append(draft)
        if key == "reasoning":
            draft.reasoning = [value] if value else []
            in_reasoning = True
        else:
            setattr(draft, key, _coerce_score(value))
    return drafts


def _collect_drafts(text: str) -> List[_Draft]:
    drafts: List[_Draft] = []
    for block in _split_blocks(text):
        drafts.extend(_drafts_from_block(block))
    return drafts


def _draft_to_record(draft: _Draft, topic: str, warnings: List[str]) -> TitleSuggestion:
    reasoning = " ".join(part for part in draft.reasoning if part)
    return _build_record(
        draft.title, draft.news, draft.search, draft.overall, reasoning, topic, warnings
    )


def parse_labeled_blocks(text: str, topic: str) -> Optional[StrategyOutcome]:
    warnings: List[str] = []
    records = [
        _draft_to_record(draft, topic, warnings)
        for draft in _collect_drafts(text)
        if draft.is_complete()
    ]
    if not records:
        return None
    return records, warnings


def parse_relaxed_blocks(text: str, topic: str) -> Optional[StrategyOutcome]:
    warnings: List[str] = []
    records = [
        _draft_to_record(draft, topic, warnings)
        for draft in _collect_drafts(text)
        if draft.title
    ]
    if not records:
        return None
    warnings.insert(0, "No fully scored blocks found; accepted blocks with a title only.")
    return records, warnings


# --- Strategy 4: headline-looking lines ------------------------------------------

_INTRO_PATTERN = re.compile(r"^(here are|here's|here is|i've created|i have created|sure)\b", re.I)
_LISTED_PATTERN = re.compile(r"^\s*(?:\d+\s*[.)]|[-*•])\s+")


def _looks_like_title(line: str) -> bool:
    if not line or line.endswith(":") or _INTRO_PATTERN.match(line):
        return False
    if line.endswith(".") and not line.endswith("..."):
        return False
    if len(line) > 150 or not (line[0].isalnum() or line[0] in "\"'“‘"):
        return False
    return 3 <= len(line.split()) <= 20


def scrape_title_lines(text: str, topic: str) -> Optional[StrategyOutcome]:
    records: List[TitleSuggestion] = []
    seen: set[str] = set()
    for raw_line in text.splitlines():
        matched = _match_field(raw_line)
        if matched is not None:
            key, value = matched
            if key != "title":
                continue
            candidate = _clean_title(value)
        else:
            candidate = _clean_title(_strip_decorations(raw_line))
            if not _looks_like_title(candidate):
                continue
        if not candidate or candidate.lower() in seen:
            continue
        seen.add(candidate.lower())
        records.append(
            TitleSuggestion(
                title=candidate,
                news_score=DEFAULT_SCORE,
                search_score=DEFAULT_SCORE,
                score=DEFAULT_SCORE,
                reasoning=default_reasoning(topic),
            )
        )
    if not records:
        return None
    return records, [
        f"Recovered {len(records)} headline-like line(s) with placeholder scores."
    ]


TITLE_STRATEGIES: List[Tuple[str, Strategy]] = [
    ("json", parse_json_array),
    ("labeled_blocks", parse_labeled_blocks),
    ("relaxed_blocks", parse_relaxed_blocks),
    ("title_lines", scrape_title_lines),
]

# Strategies whose output is always a best guess, even without per-field warnings.
_LOSSY_STRATEGIES = {"relaxed_blocks", "title_lines"}


def normalize_title_suggestions(
    text: str | None,
    topic: str,
    strategies: Optional[List[Tuple[str, Strategy]]] = None,
) -> ParseResult:
    """Run the title strategies in order and return the first that finds records."""
    raw = text or ""
    if not raw.strip():
        return Failed(reason="Model returned an empty completion.")

    for name, strategy in strategies or TITLE_STRATEGIES:
        outcome = strategy(raw, topic)
        if outcome is None:
            logger.debug("Title strategy %s found nothing", name)
            continue
        records, warnings = outcome
        logger.info("Title strategy %s recovered %d record(s)", name, len(records))
        if warnings or name in _LOSSY_STRATEGIES:
            return PartialOk(records=records, warnings=warnings, strategy=name)
        return Ok(records=records, strategy=name)

    return Failed(
        reason="No title-bearing lines found in the model response.",
        raw_preview=preview(raw),
    )


# --- Outline / article / section parsing -----------------------------------------

_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str | None) -> dict:
    """Decode the outermost ``{...}`` span; models often wrap JSON in prose."""
    match = _OBJECT_PATTERN.search(text or "")
    if not match:
        raise ParseFailure("No JSON found in response", text)
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise ParseFailure(f"Malformed JSON in response: {exc.msg}", text) from exc
    if not isinstance(data, dict):
        raise ParseFailure("Expected a JSON object in response", text)
    return data


def parse_outline(text: str | None) -> ArticleOutline:
    data = extract_json_object(text)
    try:
        validate_payload(data, "outline")
    except ValueError as exc:
        raise ParseFailure(str(exc), text) from exc
    return ArticleOutline.model_validate(data)


def parse_article(text: str | None) -> Article:
    data = extract_json_object(text)
    try:
        validate_payload(data, "article")
    except ValueError as exc:
        raise ParseFailure(str(exc), text) from exc
    return Article.model_validate(data)


def fallback_subsections(section_title: str) -> List[str]:
    return [
        f"Key aspects of {section_title}",
        f"How {section_title} impacts your audience",
        f"Best practices for {section_title}",
    ]


_LINE_PREFIX_PATTERN = re.compile(r"^[\"'\d.\-*]+\s*")


def parse_subsections(text: str | None, section_title: str) -> List[str]:
    """
    Recover replacement subsection titles for one outline section.

    Prefers a JSON array; otherwise takes up to three cleaned lines. Falls back
    to canned titles built from the section title, so it never fails.
    """
    raw = text or ""
    subsections: List[str] = []
    array = _ARRAY_PATTERN.search(raw)
    if array:
        try:
            data = json.loads(array.group(0))
        except json.JSONDecodeError:
            data = None
        if isinstance(data, list):
            for item in data:
                if isinstance(item, dict):
                    item = item.get("title")
                if isinstance(item, str) and item.strip():
                    subsections.append(item.strip())
    else:
        for line in raw.splitlines():
            cleaned = _LINE_PREFIX_PATTERN.sub("", line.strip()).strip().strip("\"'")
            if cleaned:
                subsections.append(cleaned)
        subsections = subsections[:MAX_SUBSECTIONS]

    if not subsections:
        logger.warning(
            "Could not parse subsections for '%s'; using fallbacks. Raw: %s",
            section_title,
            preview(raw, 200),
        )
        return fallback_subsections(section_title)
    return subsections
