"""Client for the Google Programmable Search (Custom Search JSON) API."""

from __future__ import annotations

import os
from typing import Any

import httpx

from app.clients.errors import (
    SearchClientError,
    SearchRateLimitError,
    SearchSchemaError,
    SearchTimeoutError,
)

PROVIDER = "Google Custom Search"
MAX_RESULTS_PER_REQUEST = 10


class GoogleSearchClient:
    """Minimal Custom Search client returning `{title, link}` items."""

    def __init__(
        self,
        api_key: str,
        cx: str,
        *,
        base_url: str = "https://www.googleapis.com",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key or not cx:
            raise ValueError("GOOGLE_API_KEY and GOOGLE_CX are required to create a GoogleSearchClient.")
        self._api_key = api_key
        self._cx = cx
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_env(cls) -> "GoogleSearchClient":
        """Instantiate the client using GOOGLE_API_KEY / GOOGLE_CX."""
        return cls(os.getenv("GOOGLE_API_KEY", ""), os.getenv("GOOGLE_CX", ""))

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            self._http.close()

    def search(self, *, query: str, num: int = 6) -> list[dict[str, Any]]:
        """Run a keyword query and return ranked result items."""
        if num <= 0:
            raise ValueError("num must be a positive integer.")

        params = {
            "key": self._api_key,
            "cx": self._cx,
            "q": query,
            "num": str(min(num, MAX_RESULTS_PER_REQUEST)),
        }
        try:
            response = self._http.get("/customsearch/v1", params=params)
        except httpx.TimeoutException as exc:  # pragma: no cover - network failures
            raise SearchTimeoutError(PROVIDER) from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network failures
            raise SearchClientError(f"HTTP error calling Google Custom Search: {exc}") from exc

        if response.status_code == 429:
            raise SearchRateLimitError(PROVIDER)
        if response.status_code in (408, 504):
            raise SearchTimeoutError(PROVIDER)
        if response.status_code >= 400:
            raise SearchClientError(
                f"Google Custom Search request failed: {response.status_code} - {response.text[:200]}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchSchemaError("Failed to decode Google Custom Search response JSON.") from exc
        if not isinstance(data, dict):
            raise SearchSchemaError("Google Custom Search response must be a JSON object.")

        # `items` is omitted entirely when a query has no hits.
        items = data.get("items", [])
        if not isinstance(items, list):
            raise SearchSchemaError("`items` in Google Custom Search response must be a list.")
        return [
            {"title": (item.get("title") or "").strip(), "link": item["link"]}
            for item in items
            if isinstance(item, dict) and item.get("link")
        ]

    def __enter__(self) -> "GoogleSearchClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
