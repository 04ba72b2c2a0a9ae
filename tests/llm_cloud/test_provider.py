import pytest
from openai import AsyncOpenAI

from config import CONFIG
from llm_cloud.provider import (
    get_client,
    get_provider_name,
    require_any_env,
    validate_env_for_provider,
)


@pytest.mark.parametrize("provider, env_var, base_url", [
    ("groq", "GROQ_API_KEY", "https://api.groq.com/openai/v1"),
    ("openrouter", "OPENROUTER_API_KEY", "https://openrouter.ai/api/v1"),
])
def test_get_client_routes_by_provider(provider, env_var, base_url, monkeypatch):
    monkeypatch.setenv(env_var, f"dummy-{provider}-key")
    monkeypatch.setitem(CONFIG["llm"], "provider", provider)
    monkeypatch.setitem(CONFIG["llm"], "base_url", "")

    # Act: construct the client (no network call)
    client = get_client()

    assert isinstance(client, AsyncOpenAI)
    assert str(client.base_url).rstrip("/") == base_url
    assert client.api_key == f"dummy-{provider}-key"


def test_openrouter_client_sends_attribution_headers(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "dummy-openrouter-key")
    monkeypatch.setitem(CONFIG["llm"], "provider", "openrouter")
    monkeypatch.setitem(CONFIG["llm"], "base_url", "")

    headers = get_client().default_headers

    assert headers["X-Title"] == "PokeBuddy"
    assert "HTTP-Referer" in headers


def test_configured_base_url_wins(monkeypatch):
    monkeypatch.setitem(CONFIG["llm"], "provider", "groq")
    monkeypatch.setitem(CONFIG["llm"], "base_url", "http://localhost:8080/v1")

    assert str(get_client().base_url).rstrip("/") == "http://localhost:8080/v1"


def test_provider_name_is_normalized():
    assert get_provider_name({"llm": {"provider": "  OpenRouter "}}) == "openrouter"
    assert get_provider_name({"llm": {}}) == "groq"


def test_unsupported_provider_is_rejected():
    with pytest.raises(ValueError):
        validate_env_for_provider({"llm": {"provider": "mistral"}})


def test_missing_or_placeholder_key_is_rejected(monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        validate_env_for_provider({"llm": {"provider": "openrouter"}})

    monkeypatch.setenv("OPENROUTER_API_KEY", "your-openrouter-api-key-here")
    with pytest.raises(RuntimeError):
        require_any_env(["OPENROUTER_API_KEY"])
