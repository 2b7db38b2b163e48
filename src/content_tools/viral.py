"""Headline rewrites in four "viral" formats.

Each format pairs a prompt with a tolerant parser and a canned fallback list,
so a rewrite request always returns the format's expected number of titles
(except ``specific``/``tangible``, which return what the model gave, up to five).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import InvalidRequest
from .llm import complete

logger = logging.getLogger(__name__)

FORMATS = ("whisper", "hormozi", "tangible", "specific")

_INTRO_LINE = re.compile(r"^(here are|here's|i've created|i have created).*?\n", re.I)
_LEADING_MARKER = re.compile(r"^([*\d]+[.):]|#\d+[.):]|\*\s*)", re.I)
_WHISPER_SUFFIX = re.compile(
    r"\s*[-–—]\s*\**\s*(Trust|Obstacle|Benefit|Outcome)\s*Whisper\s*\**\s*$", re.I
)
_WHISPER_LABEL_IN_PARENS = re.compile(r"\(\s*(Trust|Obstacle|Benefit|Outcome)\s*Whisper\s*:?\s*", re.I)

WHISPERS = {
    "Trust Whisper": "(Written By AI Experts)",
    "Obstacle Whisper": "(Without Any Coding Experience)",
    "Benefit Whisper": "(And How To Solve It)",
    "Outcome Whisper": "(And Start Earning $250,000 Per Year In Your Sweatpants)",
}

_TANGIBLE_NOISE = (
    "##",
    "intangible:",
    "intangible pieces:",
    "tangible headlines:",
)
_TANGIBLE_NOISE_FRAGMENTS = (
    "this is a broad",
    "this implies",
    "doesn't specify",
    "analysis:",
    "action + result",
    "generic financial outcome",
    "somewhat tangible",
    "lacks specifics",
)
_TANGIBLE_SIGNAL = re.compile(
    r"\d|per (day|week|month|year)|increase|boost|grow|earn|make|build|create|generate|launch|sell",
    re.I,
)
_TANGIBLE_TRAILING_NOTE = re.compile(
    r"\s*\([^)]*?(specific|income|goal|timeframe|monetization|method|target|valuation|ai tool)[^)]*?\)$",
    re.I,
)

HORMOZI_PROBLEMS = (
    "spending a fortune",
    "hiring expensive experts",
    "wasting hours on research",
    "using complicated tools",
    "needing technical skills",
    "getting overwhelmed by options",
    "making costly mistakes",
)
HORMOZI_OBSTACLES = (
    "you're a complete beginner",
    "you have limited time",
    "you're on a tight budget",
    "you've failed before",
    "you lack connections",
    "you have no prior experience",
    "you're starting from scratch",
)


@dataclass
class ViralRequest:
    format: str
    headline: str
    audience: str = ""
    promise: str = ""

    def validate(self) -> None:
        if self.format not in FORMATS:
            raise InvalidRequest(f"format must be one of: {', '.join(FORMATS)}")
        if not self.headline.strip():
            raise InvalidRequest("Headline is required")
        if self.format == "specific" and not (self.audience.strip() and self.promise.strip()):
            raise InvalidRequest("Topic, audience, and promise are required for the specific format")


def clean_title(line: str) -> str:
    cleaned = _LEADING_MARKER.sub("", line.strip())
    cleaned = cleaned.replace("**", "")
    cleaned = _WHISPER_SUFFIX.sub("", cleaned)
    return cleaned.strip()


def _content_lines(content: str) -> List[str]:
    body = _INTRO_LINE.sub("", content, count=1)
    return [line for line in body.split("\n") if line.strip()]


# --- Prompts ---------------------------------------------------------------------

def whisper_prompt(req: ViralRequest) -> str:
    examples = "\n".join(
        f"- {kind}: How to Grow Your Email List {whisper}" for kind, whisper in WHISPERS.items()
    )
    rules = "\n".join(f'For the {kind}, please use "{w}" as the whisper.' for kind, w in WHISPERS.items())
    return (
        'I am going to train you to use the "Whisper Technique."\n\n'
        'The "Whisper Technique" is where you make your primary promise in your headline '
        '(and then you "whisper" a follow-up idea in parenthesis).\n\n'
        f"For example:\n{examples}\n\n"
        f'My headline is: "{req.headline}"\n\n'
        "Please generate 4 headlines, one for each type of whisper. Format each headline as "
        "the original headline followed by the whisper in parentheses. DO NOT use quotes "
        "around the headlines. DO NOT include the whisper type in the parentheses.\n\n"
        f"{rules}"
    )


def hormozi_prompt(req: ViralRequest) -> str:
    return (
        "I am going to give you a topic and I want you to generate article titles using the "
        '"How to (YAA) without (BOO) even if (Greatest Obstacle)" format.\n\n'
        '"YAA" is the goal of the subtopic. "BOO" is a common problem of the subtopic. '
        '"Greatest Obstacle" is what is standing in the way.\n\n'
        f'My topic is: "{req.headline}"\n\n'
        "Please generate 7 headlines using this format. Make each headline unique with "
        "different problems and obstacles."
    )


def tangible_prompt(req: ViralRequest) -> str:
    return (
        'I am going to give you a headline and I want you to make it "TANGIBLE."\n\n'
        "TANGIBLE problems, benefits, and outcomes are noun-oriented "
        '("...to buy your first $1 million house"). Intangible ones are adjective-oriented '
        '("...to live happily ever after").\n\n'
        "Intangible: Make more money\nTangible: Make $2,000 in your first month of freelancing\n\n"
        f'My headline is: "{req.headline}"\n\n'
        "Please generate 5 tangible headlines. Do NOT include analysis or explanations in "
        "parentheses. Each headline should include specific numbers, timeframes, or "
        "measurable outcomes."
    )


def specific_prompt(req: ViralRequest) -> str:
    return (
        "I am going to give you a headline and I want you to make it more specific.\n\n"
        "A good headline must answer 3 questions: What is this about? Who is this for? "
        "And why should they read it?\n\n"
        f'My topic is: "{req.headline}"\n'
        f'My target audience is: "{req.audience}"\n'
        f'My promise/outcome is: "{req.promise}"\n\n'
        "Please generate 5 specific headlines that clearly identify the topic, audience, and "
        "promise/outcome. Do NOT start the headlines with the audience name followed by a colon."
    )


# --- Parsers ------------------------------------------------------------------

def parse_whisper_titles(content: str, headline: str) -> List[str]:
    lines = _content_lines(content)
    titles: List[str] = []
    for line in lines:
        if "(" in line and ")" in line:
            cleaned = clean_title(line)
            cleaned = re.sub(r'^["\'](.*)["\']$', r"\1", cleaned)
            cleaned = _WHISPER_LABEL_IN_PARENS.sub("(", cleaned)
            titles.append(cleaned)
        if len(titles) == len(WHISPERS):
            break

    # Model ignored the parenthesis instruction: rebuild from labelled lines.
    if len(titles) < len(WHISPERS):
        for kind, whisper in WHISPERS.items():
            for line in lines:
                if kind.lower() not in line.lower():
                    continue
                match = re.search(rf"{kind}[:\s-]*\s*[\"']?([^\"']*)[\"']?", line, re.I)
                if match and match.group(1).strip():
                    title = match.group(1).strip()
                    if "(" not in title:
                        title = f"{headline} {whisper}"
                    titles.append(title)
                    break

    fallbacks = [f"{headline} {whisper}" for whisper in WHISPERS.values()]
    titles.extend(fallbacks[len(titles):])
    return titles[: len(WHISPERS)]


def parse_hormozi_titles(content: str, headline: str) -> List[str]:
    lines = _content_lines(content)
    titles: List[str] = []
    for line in lines:
        lowered = line.lower()
        if "how to" in lowered and "without" in lowered and "even if" in lowered:
            titles.append(clean_title(line))
        if len(titles) == 7:
            return titles
    if lines:
        return [clean_title(line) for line in lines[:7]]
    return [
        f"How to {headline} without {problem} even if {obstacle}"
        for problem, obstacle in zip(HORMOZI_PROBLEMS, HORMOZI_OBSTACLES)
    ]


def parse_tangible_titles(content: str, headline: str) -> List[str]:
    titles: List[str] = []
    for line in _content_lines(content):
        lowered = line.lower().strip()
        if lowered.startswith(_TANGIBLE_NOISE) or any(
            frag in lowered for frag in _TANGIBLE_NOISE_FRAGMENTS
        ):
            continue
        if not _TANGIBLE_SIGNAL.search(line):
            continue
        cleaned = re.sub(r"^tangible:\s*", "", line.strip(), flags=re.I)
        cleaned = _TANGIBLE_TRAILING_NOTE.sub("", cleaned)
        titles.append(clean_title(cleaned))
        if len(titles) == 5:
            break
    if titles:
        return titles
    return [
        f"Earn $500 per month writing creative content with {headline}",
        f"Generate 50 new leads in 30 days using {headline}",
        f"Build a portfolio of 10 client projects in 90 days with {headline}",
        f"Create 3 passive income streams worth $1,000/month with {headline}",
        f"Launch your first digital product that earns $2,000 in its first week using {headline}",
    ]


def parse_specific_titles(content: str, headline: str) -> List[str]:
    titles = [clean_title(line) for line in _content_lines(content)[:5]]
    titles = [t for t in titles if t]
    if titles:
        return titles
    return [
        f"6 Tips For {headline} To Get Promoted In Their First 30 Days",
        f"The Ultimate Guide To {headline} For Beginners In 2025",
        f"How {headline} Can Increase Productivity By 50% In Just One Week",
        f"Why Most {headline} Fail And How To Avoid Their Mistakes",
        f"{headline}: The Complete Step-By-Step Blueprint For Success",
    ]


_HANDLERS: Dict[str, tuple[Callable[[ViralRequest], str], Callable[[str, str], List[str]]]] = {
    "whisper": (whisper_prompt, parse_whisper_titles),
    "hormozi": (hormozi_prompt, parse_hormozi_titles),
    "tangible": (tangible_prompt, parse_tangible_titles),
    "specific": (specific_prompt, parse_specific_titles),
}


def generate_viral_titles(req: ViralRequest, services, *, model: Optional[str] = None) -> List[str]:
    """Rewrite a headline in the requested format; parsing falls back, the LLM call does not."""
    req.validate()
    build_prompt, parse = _HANDLERS[req.format]
    content = complete(
        services.llm,
        build_prompt(req),
        model=model or services.settings.viral_model,
        step=f"Viral ({req.format})",
    )
    titles = parse(content, req.headline.strip())
    logger.info("Generated %d %s titles for %r", len(titles), req.format, req.headline)
    return titles
