from types import SimpleNamespace

import httpx
import openai
import pytest

from app.clients.llm import (
    GROQ_BASE_URL,
    LLMProviderError,
    LLMRateLimitError,
    OpenAIChatProvider,
    build_providers,
)
from app.config import Settings

_REQUEST = httpx.Request("POST", "https://api.example.com/v1/chat/completions")


class FakeCompletions:
    def __init__(self, outcome) -> None:
        self._outcome = outcome
        self.kwargs: dict | None = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome


def _provider(outcome) -> tuple[OpenAIChatProvider, FakeCompletions]:
    completions = FakeCompletions(outcome)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return OpenAIChatProvider(name="groq", api_key="", model="llama-test", client=client), completions


def _response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def test_complete_returns_stripped_text_and_sends_prompts():
    provider, completions = _provider(_response("  $10 million \n"))

    answer = provider.complete(system_prompt="sys", user_prompt="user", max_tokens=50)

    assert answer == "$10 million"
    assert completions.kwargs["model"] == "llama-test"
    assert completions.kwargs["max_tokens"] == 50
    assert completions.kwargs["temperature"] == pytest.approx(0.1)
    assert completions.kwargs["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "user"},
    ]


def test_rate_limit_is_mapped():
    error = openai.RateLimitError("slow down", response=httpx.Response(429, request=_REQUEST), body=None)
    provider, _ = _provider(error)

    with pytest.raises(LLMRateLimitError) as excinfo:
        provider.complete(system_prompt="s", user_prompt="u", max_tokens=10)
    assert excinfo.value.code == "LLM_RATE_LIMIT"
    assert excinfo.value.provider == "groq"


def test_status_and_timeout_errors_are_mapped():
    status_error = openai.APIStatusError("bad", response=httpx.Response(500, request=_REQUEST), body=None)
    provider, _ = _provider(status_error)
    with pytest.raises(LLMProviderError) as excinfo:
        provider.complete(system_prompt="s", user_prompt="u", max_tokens=10)
    assert excinfo.value.code == "LLM_UPSTREAM"

    provider, _ = _provider(openai.APITimeoutError(request=_REQUEST))
    with pytest.raises(LLMProviderError) as excinfo:
        provider.complete(system_prompt="s", user_prompt="u", max_tokens=10)
    assert excinfo.value.code == "LLM_TIMEOUT"


def test_empty_choices_is_schema_error():
    provider, _ = _provider(SimpleNamespace(choices=[]))

    with pytest.raises(LLMProviderError) as excinfo:
        provider.complete(system_prompt="s", user_prompt="u", max_tokens=10)
    assert excinfo.value.code == "LLM_SCHEMA_ERR"


def test_requires_key_without_client():
    with pytest.raises(ValueError):
        OpenAIChatProvider(name="openai", api_key="", model="gpt-4o-mini")


def test_build_providers_respects_order_and_keys():
    config = Settings(_env_file=None, openai_api_key="sk-openai", groq_api_key="gsk-groq")

    providers = build_providers(config, ["groq", "mystery", "openai"])

    assert [provider.name for provider in providers] == ["groq", "openai"]
    assert str(providers[0]._client.base_url).startswith(GROQ_BASE_URL)
    assert providers[1].model == config.openai_extraction_model


def test_build_providers_skips_missing_keys():
    config = Settings(_env_file=None, openai_api_key=None, groq_api_key=None)

    assert build_providers(config, ["groq", "openai"]) == []
