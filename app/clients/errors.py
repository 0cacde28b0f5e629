"""Error hierarchy shared by the keyword search clients."""

from __future__ import annotations


class SearchClientError(RuntimeError):
    """Base error for search client failures."""

    def __init__(self, message: str, code: str = "SEARCH_ERROR") -> None:
        super().__init__(message)
        self.code = code


class SearchRateLimitError(SearchClientError):
    """Raised when a search API responds with HTTP 429."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"Rate limited by {provider}", code="SEARCH_429")
        self.provider = provider


class SearchTimeoutError(SearchClientError):
    """Raised when a search request times out."""

    def __init__(self, provider: str) -> None:
        super().__init__(f"{provider} request timed out", code="SEARCH_TIMEOUT")
        self.provider = provider


class SearchSchemaError(SearchClientError):
    """Raised when a search response does not match expectations."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SEARCH_SCHEMA_ERR")
