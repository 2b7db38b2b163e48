import pytest

from content_tools.viral import (
    WHISPERS,
    ViralRequest,
    clean_title,
    generate_viral_titles,
    parse_hormozi_titles,
    parse_specific_titles,
    parse_tangible_titles,
    parse_whisper_titles,
)

from conftest import make_services


def test_validate_rejects_unknown_format():
    with pytest.raises(ValueError):
        ViralRequest(format="clickbait", headline="x").validate()


def test_clean_title_strips_markers_and_whisper_labels():
    assert clean_title("1. **Grow Fast (And How To Solve It)** - Benefit Whisper") == (
        "Grow Fast (And How To Solve It)"
    )


def test_whisper_parser_fills_missing_with_fallbacks():
    content = (
        "Here are your headlines:\n"
        '1. "Grow Your List (Written By AI Experts)"\n'
        "2. Grow Your List (Trust Whisper: Without Any Coding Experience)\n"
    )

    titles = parse_whisper_titles(content, "Grow Your List")

    assert len(titles) == len(WHISPERS)
    assert titles[0] == "Grow Your List (Written By AI Experts)"
    assert titles[1] == "Grow Your List (Without Any Coding Experience)"
    assert titles[3].endswith("(And Start Earning $250,000 Per Year In Your Sweatpants)")


def test_hormozi_parser_keeps_every_line_when_formula_lines_are_short():
    content = (
        "How to Save Money without Budget Apps even if You Earn Little\n"
        "Random aside\n"
        "How to Invest without Stress even if You're New\n"
    )

    titles = parse_hormozi_titles(content, "Saving")

    assert titles == [
        "How to Save Money without Budget Apps even if You Earn Little",
        "Random aside",
        "How to Invest without Stress even if You're New",
    ]


def test_hormozi_parser_fallback_on_empty():
    titles = parse_hormozi_titles("", "Start a Blog")

    assert len(titles) == 7
    assert titles[0].startswith("How to Start a Blog without")


def test_tangible_parser_drops_analysis_lines():
    content = (
        "## Tangible Headlines:\n"
        "Analysis: this implies a broad goal\n"
        "1. Earn $2,000 in 30 days freelancing (specific income goal)\n"
        "Feel happier\n"
    )

    assert parse_tangible_titles(content, "Freelancing") == ["Earn $2,000 in 30 days freelancing"]


def test_specific_parser_falls_back_on_empty():
    assert len(parse_specific_titles("", "Budgeting")) == 5


def test_generate_viral_titles_uses_viral_model():
    services = make_services("1. A\n2. B\n3. C")

    titles = generate_viral_titles(
        ViralRequest(format="specific", headline="Budgeting", audience="students", promise="save"),
        services,
    )

    assert titles == ["A", "B", "C"]
    call = services.llm.calls[0]
    assert call["model"] == services.settings.viral_model
    assert "students" in call["messages"][0]["content"]
