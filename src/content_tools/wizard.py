"""Client-side state for the topic -> titles -> outline -> article wizard."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from .models import Article, ArticleOutline, TitleSuggestion
from .workflow import (
    DEFAULT_WORD_COUNT,
    Services,
    build_section_prompt,
    generate_article,
    generate_outline,
    generate_titles,
    regenerate_section,
)

logger = logging.getLogger(__name__)

IDLE = "idle"
TITLES = "titles"
OUTLINE = "outline"
ARTICLE = "article"
STEPS = (IDLE, TITLES, OUTLINE, ARTICLE)


class WizardError(RuntimeError):
    """A step was triggered out of order or while another step was running."""


class ContentSession:
    """
    Linear, user-driven wizard.

    Every transition is an explicit call. Going back keeps everything that was
    generated and never refetches; only the generate_* calls hit the network,
    and only one of them may be in flight at a time.
    """

    def __init__(
        self,
        services: Services,
        *,
        word_count: int = DEFAULT_WORD_COUNT,
        titles_fn=generate_titles,
        outline_fn=generate_outline,
        article_fn=generate_article,
        section_fn=regenerate_section,
    ):
        self.services = services
        self.word_count = word_count
        self._titles_fn = titles_fn
        self._outline_fn = outline_fn
        self._article_fn = article_fn
        self._section_fn = section_fn

        self.step = IDLE
        self.pending: Optional[str] = None
        self.topic: str = ""
        self.titles: List[TitleSuggestion] = []
        self.selected_title: Optional[str] = None
        self.outline: Optional[ArticleOutline] = None
        self.article: Optional[Article] = None

    @contextmanager
    def _busy(self, action: str) -> Iterator[None]:
        if self.pending:
            raise WizardError(f"Cannot {action} while '{self.pending}' is still running.")
        self.pending = action
        try:
            yield
        finally:
            self.pending = None

    def _require_step(self, action: str, *allowed: str) -> None:
        if self.step not in allowed:
            raise WizardError(
                f"Cannot {action} from step '{self.step}' (allowed: {', '.join(allowed)})."
            )

    def generate_titles(self, topic: str) -> List[TitleSuggestion]:
        self._require_step("generate titles", IDLE, TITLES)
        with self._busy("generate titles"):
            result = self._titles_fn(topic, self.services)
        self.topic = topic
        self.titles = result.titles
        self.selected_title = None
        self.step = TITLES
        return self.titles

    def select_title(self, choice: int | str) -> str:
        self._require_step("select a title", TITLES)
        if isinstance(choice, int):
            if not 0 <= choice < len(self.titles):
                raise WizardError(f"No title at position {choice}.")
            self.selected_title = self.titles[choice].title
        else:
            if not choice.strip():
                raise WizardError("Title must not be empty.")
            self.selected_title = choice.strip()
        return self.selected_title

    def generate_outline(self) -> ArticleOutline:
        self._require_step("generate an outline", TITLES, OUTLINE)
        if not self.selected_title:
            raise WizardError("Select a title before generating an outline.")
        with self._busy("generate outline"):
            outline = self._outline_fn(
                self.selected_title, self.topic, self.services, word_count=self.word_count
            )
        self.outline = outline
        self.article = None
        self.step = OUTLINE
        return outline

    def edit_section(
        self,
        index: int,
        *,
        title: Optional[str] = None,
        sub_sections: Optional[List[str]] = None,
    ) -> ArticleOutline:
        self._require_step("edit the outline", OUTLINE)
        section = self._section(index)
        if title is not None:
            section.title = title
        if sub_sections is not None:
            section.sub_sections = list(sub_sections)
        return self.outline

    def regenerate_section(self, index: int, prompt: Optional[str] = None) -> List[str]:
        self._require_step("regenerate a section", OUTLINE)
        section = self._section(index)
        prompt = prompt or build_section_prompt(self.topic, section.title, section.sub_sections)
        with self._busy("regenerate section"):
            subsections = self._section_fn(prompt, self.topic, section.title, self.services)
        section.sub_sections = subsections
        return subsections

    def generate_article(self) -> Article:
        self._require_step("generate the article", OUTLINE, ARTICLE)
        with self._busy("generate article"):
            article = self._article_fn(
                self.outline, self.topic, self.services, word_count=self.word_count
            )
        self.article = article
        self.step = ARTICLE
        return article

    def go_back(self) -> str:
        """Step back one stage without discarding anything generated so far."""
        if self.pending:
            raise WizardError(f"Cannot go back while '{self.pending}' is still running.")
        index = STEPS.index(self.step)
        if index > 0:
            self.step = STEPS[index - 1]
        logger.debug("Wizard moved back to %s", self.step)
        return self.step

    def _section(self, index: int):
        if self.outline is None or not 0 <= index < len(self.outline.sections):
            raise WizardError(f"No outline section at position {index}.")
        return self.outline.sections[index]
