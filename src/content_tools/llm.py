"""OpenRouter completions through the OpenAI SDK."""

from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import OpenAI

from .config import Settings, get_settings
from .errors import UpstreamError

logger = logging.getLogger(__name__)


def build_client(settings: Optional[Settings] = None) -> OpenAI:
    """Create an OpenAI-compatible client pointed at OpenRouter."""
    settings = settings or get_settings()
    if not settings.openrouter_api_key:
        raise RuntimeError(
            "OPENROUTER_API_KEY is required. Set it in the environment or .env file."
        )
    return OpenAI(
        api_key=settings.openrouter_api_key,
        base_url=settings.openrouter_base_url,
        timeout=settings.request_timeout,
        max_retries=0,
        default_headers={
            "HTTP-Referer": settings.http_referer,
            "X-Title": settings.app_title,
        },
    )


def _completion_text_or_raise(response: object, *, step: str) -> str:
    """Extract the first choice's text or raise a clear error when it is missing."""
    choices = getattr(response, "choices", None)
    if not choices:
        err = getattr(response, "error", None)
        if err:
            message = err.get("message") if isinstance(err, dict) else err
            raise UpstreamError(f"{step}: OpenRouter API error: {message}")
        raise UpstreamError(f"{step}: invalid response format from OpenRouter API")

    choice = choices[0]
    message = getattr(choice, "message", None)
    text = getattr(message, "content", None) if message is not None else None
    if isinstance(text, str) and text.strip():
        return text

    reason = getattr(choice, "finish_reason", None)
    if reason == "length":
        raise UpstreamError(f"{step}: completion truncated before any text (finish_reason=length)")
    raise UpstreamError(f"{step}: completion missing output text")


def complete(client: OpenAI, prompt: str, *, model: str, step: str) -> str:
    """Send one user prompt and return the completion text."""
    logger.info("%s: requesting completion from %s (%d prompt chars)", step, model, len(prompt))
    try:
        response = client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
        )
    except openai.APIStatusError as exc:
        logger.error("%s: OpenRouter returned %s", step, exc.status_code)
        raise UpstreamError(
            f"{step}: OpenRouter API returned {exc.status_code}: {exc.message}",
            status_code=exc.status_code,
        ) from exc
    except openai.APIError as exc:
        logger.error("%s: OpenRouter request failed: %s", step, exc)
        raise UpstreamError(f"{step}: OpenRouter request failed: {exc}") from exc

    text = _completion_text_or_raise(response, step=step)
    logger.debug("%s: raw completion %r", step, text[:500])
    return text
