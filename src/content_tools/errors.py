"""Exception types shared by the generation, research and history layers."""

from __future__ import annotations


RAW_PREVIEW_CHARS = 1000


def preview(text: str | None, limit: int = RAW_PREVIEW_CHARS) -> str:
    """Truncate raw model output for error payloads and logs."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class InvalidRequest(ValueError):
    """Caller input is missing or malformed; nothing downstream was called."""


class UpstreamError(RuntimeError):
    """An outbound API returned an error status or an unusable payload."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ParseFailure(ValueError):
    """Model output could not be turned into the expected structure."""

    def __init__(self, message: str, raw_content: str | None = None):
        super().__init__(message)
        self.raw_preview = preview(raw_content)


class HistoryError(RuntimeError):
    """The history store rejected or failed a read/write."""


class HistoryNotFound(HistoryError):
    """No history row has the requested id."""
