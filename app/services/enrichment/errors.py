"""Shared error classes for the enrichment pipeline."""

from __future__ import annotations


class EnrichmentError(RuntimeError):
    """Base exception raised while orchestrating a record enrichment."""

    def __init__(self, message: str, code: str = "ENRICHMENT_ERROR") -> None:
        super().__init__(message)
        self.code = code


class EnrichmentInputError(EnrichmentError):
    """Raised when a record cannot be enriched as given."""
