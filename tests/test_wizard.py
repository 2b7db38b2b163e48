import pytest

from content_tools.models import Article, ArticleOutline, TitleSuggestion
from content_tools.wizard import ARTICLE, IDLE, OUTLINE, TITLES, ContentSession, WizardError
from content_tools.workflow import TitleGenerationResult

from conftest import make_services


SAMPLE_OUTLINE = ArticleOutline.model_validate(
    {
        "title": "Orbit for All",
        "introduction": "Intro",
        "sections": [{"title": "Costs", "subSections": ["Tickets"]}],
        "conclusion": "End",
    }
)


class Recorder:
    def __init__(self):
        self.calls = []

    def titles(self, topic, services):
        self.calls.append(("titles", topic))
        titles = [
            TitleSuggestion(title="Orbit for All", news_score=80, search_score=60, score=70, reasoning="r"),
            TitleSuggestion(title="Rockets 101", news_score=50, search_score=50, score=50, reasoning="r"),
        ]
        return TitleGenerationResult(topic=topic, titles=titles, status="ok", strategy="json")

    def outline(self, title, topic, services, *, word_count):
        self.calls.append(("outline", title, word_count))
        return SAMPLE_OUTLINE.model_copy(deep=True)

    def article(self, outline, topic, services, *, word_count):
        self.calls.append(("article", outline.title))
        return Article(title=outline.title, introduction="i", sections=[], conclusion="c")

    def section(self, prompt, topic, section_title, services):
        self.calls.append(("section", prompt, section_title))
        return ["New A", "New B"]


def make_session(recorder: Recorder, **kwargs) -> ContentSession:
    return ContentSession(
        make_services(),
        titles_fn=recorder.titles,
        outline_fn=recorder.outline,
        article_fn=recorder.article,
        section_fn=recorder.section,
        **kwargs,
    )


def test_full_walkthrough():
    rec = Recorder()
    session = make_session(rec, word_count=1200)

    session.generate_titles("orbit")
    assert session.step == TITLES
    assert session.select_title(1) == "Rockets 101"
    session.generate_outline()
    assert session.step == OUTLINE
    session.generate_article()

    assert session.step == ARTICLE
    assert ("outline", "Rockets 101", 1200) in rec.calls
    assert rec.calls[-1] == ("article", "Orbit for All")


def test_steps_cannot_be_skipped():
    session = make_session(Recorder())

    with pytest.raises(WizardError):
        session.generate_outline()
    with pytest.raises(WizardError):
        session.generate_article()

    session.generate_titles("orbit")
    with pytest.raises(WizardError):
        session.generate_outline()


def test_custom_title_and_bad_index():
    session = make_session(Recorder())
    session.generate_titles("orbit")

    with pytest.raises(WizardError):
        session.select_title(5)
    assert session.select_title("  My Own Title ") == "My Own Title"


def test_go_back_keeps_state_and_does_not_refetch():
    rec = Recorder()
    session = make_session(rec)
    session.generate_titles("orbit")
    session.select_title(0)
    session.generate_outline()

    assert session.go_back() == TITLES
    assert session.outline is not None
    assert session.titles
    assert len([c for c in rec.calls if c[0] == "titles"]) == 1
    assert session.go_back() == IDLE
    assert session.go_back() == IDLE


def test_edit_and_regenerate_section():
    rec = Recorder()
    session = make_session(rec)
    session.generate_titles("orbit")
    session.select_title(0)
    session.generate_outline()

    session.edit_section(0, title="Prices")
    subs = session.regenerate_section(0)

    assert subs == ["New A", "New B"]
    assert session.outline.sections[0].title == "Prices"
    assert session.outline.sections[0].sub_sections == ["New A", "New B"]
    _, prompt, section_title = rec.calls[-1]
    assert section_title == "Prices"
    assert "Tickets" in prompt
    with pytest.raises(WizardError):
        session.regenerate_section(3)


def test_only_one_step_in_flight():
    session = make_session(Recorder())

    def reentrant(topic, services):
        session.generate_titles("again")

    session._titles_fn = reentrant
    with pytest.raises(WizardError) as excinfo:
        session.generate_titles("orbit")

    assert "still running" in str(excinfo.value)
    assert session.pending is None
    assert session.step == IDLE
