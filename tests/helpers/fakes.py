"""Deterministic stand-ins for search APIs, page fetches and chat providers."""

from __future__ import annotations

from threading import Lock

from app.services.enrichment.extraction import (
    AMOUNT_SYSTEM_PROMPT,
    FALLBACK_SYSTEM_PROMPT,
    INVESTOR_LOOKUP_SYSTEM_PROMPT,
    INVESTOR_SYSTEM_PROMPT,
)

TASKS = {
    AMOUNT_SYSTEM_PROMPT: "amount",
    INVESTOR_SYSTEM_PROMPT: "investors",
    INVESTOR_LOOKUP_SYSTEM_PROMPT: "investor_lookup",
    FALLBACK_SYSTEM_PROMPT: "fallback",
}


class StubSearchClient:
    """Returns one canned page (or raises) per call."""

    def __init__(self, pages) -> None:
        self._pages = list(pages)
        self.queries: list[str] = []
        self.closed = False

    def search(self, *, query: str, num: int):
        self.queries.append(query)
        if not self._pages:
            return []
        page = self._pages.pop(0)
        if isinstance(page, Exception):
            raise page
        return [{"title": "result", "link": link} for link in page]

    def close(self) -> None:
        self.closed = True


class StubFetcher:
    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self._pages = pages or {}
        self.fetched: list[str] = []
        self.closed = False

    def fetch(self, url: str) -> str:
        self.fetched.append(url)
        return self._pages.get(url, "")

    def close(self) -> None:
        self.closed = True


class StubProvider:
    """Chat provider returning canned answers (or raising) per task."""

    def __init__(self, name: str, answers: dict[str, object]) -> None:
        self.name = name
        self._answers = answers
        self._lock = Lock()
        self.calls: list[dict[str, object]] = []

    def complete(self, *, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        task = TASKS[system_prompt]
        with self._lock:
            self.calls.append({"task": task, "user_prompt": user_prompt, "max_tokens": max_tokens})
        answer = self._answers.get(task, "N/A")
        if isinstance(answer, Exception):
            raise answer
        return str(answer)
