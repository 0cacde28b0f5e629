"""Client for the SerpApi Google search endpoint."""

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

PROVIDER = "SerpApi"


class SerpApiClient:
    """Minimal SerpApi client returning organic `{title, link}` results."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://serpapi.com",
        timeout: float = 10.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("SERP_API_KEY is required to create a SerpApiClient.")
        self._api_key = api_key
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    @classmethod
    def from_env(cls) -> "SerpApiClient":
        """Instantiate the client using the SERP_API_KEY environment variable."""
        return cls(os.getenv("SERP_API_KEY", ""))

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._owns_http_client:
            self._http.close()

    def search(self, *, query: str, num: int = 6) -> list[dict[str, Any]]:
        """Run a keyword query and return ranked organic results."""
        if num <= 0:
            raise ValueError("num must be a positive integer.")

        params = {
            "q": query,
            "api_key": self._api_key,
            "hl": "en",
            "gl": "us",
            "num": str(num),
        }
        try:
            response = self._http.get("/search.json", params=params)
        except httpx.TimeoutException as exc:  # pragma: no cover - network failures
            raise SearchTimeoutError(PROVIDER) from exc
        except httpx.HTTPError as exc:  # pragma: no cover - network failures
            raise SearchClientError(f"HTTP error calling SerpApi: {exc}") from exc

        if response.status_code == 429:
            raise SearchRateLimitError(PROVIDER)
        if response.status_code in (408, 504):
            raise SearchTimeoutError(PROVIDER)
        if response.status_code >= 400:
            detail = response.text[:200]
            try:
                detail = response.json().get("error") or detail
            except ValueError:  # pragma: no cover - best effort decoding
                pass
            raise SearchClientError(f"SerpApi request failed: {response.status_code} - {detail}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SearchSchemaError("Failed to decode SerpApi response JSON.") from exc
        if not isinstance(data, dict):
            raise SearchSchemaError("SerpApi response must be a JSON object.")

        results = data.get("organic_results", [])
        if not isinstance(results, list):
            raise SearchSchemaError("`organic_results` in SerpApi response must be a list.")
        return [
            {"title": (entry.get("title") or "").strip(), "link": entry["link"]}
            for entry in results
            if isinstance(entry, dict) and entry.get("link")
        ]

    def __enter__(self) -> "SerpApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
