from types import SimpleNamespace
from typing import List, Optional

import pytest

from content_tools.config import Settings
from content_tools.errors import HistoryError, HistoryNotFound
from content_tools.history import HistoryStore
from content_tools.models import HistoryRecord
from content_tools.workflow import Services


class FakeCompletions:
    """Stands in for ``client.chat.completions``; replies are consumed in order."""

    def __init__(self, replies: List[str]):
        self.replies = list(replies)
        self.calls: List[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        text = self.replies.pop(0) if self.replies else ""
        message = SimpleNamespace(content=text)
        return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])


class FakeLLM:
    def __init__(self, *replies: str):
        self.completions = FakeCompletions(list(replies))
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def calls(self) -> List[dict]:
        return self.completions.calls


class MemoryStore(HistoryStore):
    def __init__(self, fail: bool = False):
        self.records: List[HistoryRecord] = []
        self.fail = fail

    def save(self, record: HistoryRecord) -> HistoryRecord:
        if self.fail:
            raise HistoryError("database is down")
        saved = record.model_copy(update={"id": f"rec-{len(self.records) + 1}"})
        self.records.append(saved)
        return saved

    def list(self, record_type: Optional[str] = None) -> List[HistoryRecord]:
        rows = [r for r in self.records if record_type is None or r.type == record_type]
        return list(reversed(rows))

    def get(self, record_id: str) -> HistoryRecord:
        for record in self.records:
            if record.id == record_id:
                return record
        raise HistoryNotFound(f"History record {record_id} not found")


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text="", content=b""):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.content = content

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no json body")
        return self._payload


class FakeSession:
    """Returns queued responses (then 503s) and records every outbound call."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.calls: List[dict] = []

    def _next(self, **call):
        self.calls.append(call)
        if not self.responses:
            return FakeResponse(503, None, text="unavailable")
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next(method="GET", url=url, **kwargs)

    def request(self, method, url, **kwargs):
        return self._next(method=method, url=url, **kwargs)


def make_settings(**overrides) -> Settings:
    values = {
        "OPENROUTER_API_KEY": "test-key",
        "NEWS_API_KEY": "news-key",
        "HISTORY_BACKEND": "jsonl",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_services(*replies: str, store: Optional[HistoryStore] = None, http=None) -> Services:
    return Services(
        settings=make_settings(),
        llm=FakeLLM(*replies),
        store=store if store is not None else MemoryStore(),
        http=http or FakeSession(),
    )


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
