"""Chat-completion providers (OpenAI and Groq) behind one small contract."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import openai
from openai import OpenAI

from app.config import Settings

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class LLMProviderError(RuntimeError):
    """Raised when a chat-completion provider fails."""

    def __init__(self, message: str, code: str = "LLM_UPSTREAM") -> None:
        super().__init__(message)
        self.code = code


class LLMRateLimitError(LLMProviderError):
    """Raised when a provider responds with HTTP 429."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Rate limited by {provider}", code="LLM_RATE_LIMIT")
        self.provider = provider


class ChatProvider(Protocol):
    """Minimal contract for a chat-completion provider."""

    name: str

    def complete(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        ...


class OpenAIChatProvider:
    """Chat completions through the official OpenAI SDK.

    Groq exposes an OpenAI-compatible API, so the same wrapper serves both by
    pointing the SDK at a different ``base_url``.
    """

    def __init__(
        self,
        *,
        name: str,
        api_key: str,
        model: str,
        temperature: float = 0.1,
        base_url: str | None = None,
        client: Any | None = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError(f"An API key is required to create the {name} provider.")
        self.name = name
        self.model = model
        self._temperature = temperature
        self._client = client or OpenAI(api_key=api_key, base_url=base_url, max_retries=0)

    def complete(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=self._temperature,
                max_tokens=max_tokens,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.RateLimitError as exc:
            raise LLMRateLimitError(self.name) from exc
        except openai.APIStatusError as exc:
            raise LLMProviderError(
                f"{self.name} request failed: {exc.status_code}",
                code="LLM_UPSTREAM",
            ) from exc
        except openai.APITimeoutError as exc:
            raise LLMProviderError(f"{self.name} request timed out", code="LLM_TIMEOUT") from exc
        except openai.OpenAIError as exc:
            raise LLMProviderError(f"{self.name} request failed: {exc}") from exc
        return _extract_message_text(response, provider=self.name)


def _extract_message_text(response: Any, *, provider: str) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise LLMProviderError(f"{provider} response did not include choices.", code="LLM_SCHEMA_ERR")
    content = getattr(choices[0].message, "content", None)
    if isinstance(content, list):
        return "".join(part.get("text", "") for part in content if isinstance(part, dict)).strip()
    if isinstance(content, str):
        return content.strip()
    raise LLMProviderError(f"{provider} response did not include text output.", code="LLM_SCHEMA_ERR")


def build_providers(config: Settings, order: list[str], *, purpose: str = "extraction") -> list[ChatProvider]:
    """Instantiate the configured providers in the requested order, skipping any without keys."""
    providers: list[ChatProvider] = []
    for raw_name in order:
        name = raw_name.strip().lower()
        if name == "openai" and config.openai_api_key:
            model = config.openai_fallback_model if purpose == "fallback" else config.openai_extraction_model
            providers.append(
                OpenAIChatProvider(
                    name="openai",
                    api_key=config.openai_api_key,
                    model=model,
                    temperature=config.extraction_temperature,
                )
            )
        elif name == "groq" and config.groq_api_key:
            providers.append(
                OpenAIChatProvider(
                    name="groq",
                    api_key=config.groq_api_key,
                    model=config.groq_extraction_model,
                    temperature=config.extraction_temperature,
                    base_url=GROQ_BASE_URL,
                )
            )
        elif name not in {"openai", "groq"}:
            logger.warning("Ignoring unknown chat provider %r.", raw_name)
    if not providers:
        logger.info("No chat providers configured for %s; extraction will return N/A.", purpose)
    return providers
