import pytest

from content_tools.config import ConfigError, Settings, missing_settings, require_settings


REQUIRED_ENV = ("OPENROUTER_API_KEY", "NEWS_API_KEY", "SUPABASE_URL", "SUPABASE_KEY", "HISTORY_BACKEND")


@pytest.fixture
def clean_env(monkeypatch):
    for name in REQUIRED_ENV:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_require_settings_names_every_missing_key(clean_env):
    with pytest.raises(ConfigError) as excinfo:
        require_settings(Settings(_env_file=None))

    message = str(excinfo.value)
    for name in ("OPENROUTER_API_KEY", "NEWS_API_KEY", "SUPABASE_URL", "SUPABASE_KEY"):
        assert name in message


def test_jsonl_backend_does_not_need_supabase(clean_env):
    clean_env.setenv("OPENROUTER_API_KEY", "k")
    clean_env.setenv("NEWS_API_KEY", "n")
    clean_env.setenv("HISTORY_BACKEND", "jsonl")

    settings = require_settings(Settings(_env_file=None))

    assert settings.history_backend == "jsonl"
    assert settings.title_model == "deepseek/deepseek-r1-zero:free"


def test_unknown_backend_is_reported(clean_env):
    clean_env.setenv("HISTORY_BACKEND", "sqlite")

    missing = missing_settings(Settings(_env_file=None))

    assert any(item.startswith("HISTORY_BACKEND") for item in missing)


def test_model_overrides_from_env(clean_env):
    clean_env.setenv("SECTION_MODEL", "anthropic/claude-3-haiku")
    clean_env.setenv("REQUEST_TIMEOUT", "15")

    settings = Settings(_env_file=None)

    assert settings.section_model == "anthropic/claude-3-haiku"
    assert settings.request_timeout == 15.0
