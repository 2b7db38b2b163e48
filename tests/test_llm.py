from types import SimpleNamespace

import httpx
import openai
import pytest

from content_tools.errors import UpstreamError
from content_tools.llm import build_client, complete

from conftest import FakeLLM, make_settings


def test_build_client_sets_openrouter_headers():
    client = build_client(make_settings(OPENROUTER_REFERER="https://blog.example.com"))

    assert str(client.base_url).startswith("https://openrouter.ai/api/v1")
    assert client.default_headers["HTTP-Referer"] == "https://blog.example.com"
    assert client.default_headers["X-Title"] == "Content Tools"


def test_build_client_requires_key():
    with pytest.raises(RuntimeError):
        build_client(make_settings(OPENROUTER_API_KEY=None))


def test_complete_sends_single_user_message():
    llm = FakeLLM("hello")

    assert complete(llm, "prompt", model="m", step="Test") == "hello"
    assert llm.calls == [{"model": "m", "messages": [{"role": "user", "content": "prompt"}]}]


def test_complete_without_choices_raises():
    class NoChoices:
        def __init__(self):
            self.chat = SimpleNamespace(completions=self)

        def create(self, **kwargs):
            return SimpleNamespace(choices=[], error={"message": "model overloaded"})

    with pytest.raises(UpstreamError) as excinfo:
        complete(NoChoices(), "prompt", model="m", step="Titles")

    assert "model overloaded" in str(excinfo.value)


def test_complete_maps_status_errors():
    request = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")
    response = httpx.Response(402, request=request)

    class Broke:
        def __init__(self):
            self.chat = SimpleNamespace(completions=self)

        def create(self, **kwargs):
            raise openai.APIStatusError("Payment required", response=response, body=None)

    with pytest.raises(UpstreamError) as excinfo:
        complete(Broke(), "prompt", model="m", step="Outline")

    assert excinfo.value.status_code == 402
    assert "Outline" in str(excinfo.value)
