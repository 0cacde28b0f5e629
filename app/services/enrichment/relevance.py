"""Press-release relevance heuristics for candidate URLs."""

from __future__ import annotations

import logging
import re
from typing import Protocol
from urllib.parse import urlparse

from app.services.enrichment.config import EnrichmentConfig, host_matches

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class ValidationStrategy(Protocol):
    """Decides whether a candidate URL describes the funding round."""

    requires_content: bool

    def is_relevant(self, url: str, company_name: str, content: str | None = None) -> bool:
        ...


def normalize_company_name(company_name: str) -> str:
    """Lowercase alphanumeric-only form used for URL matching."""
    return _NON_ALNUM.sub("", (company_name or "").lower())


def _host(url: str) -> str:
    try:
        return urlparse(url).netloc.lower()
    except ValueError:
        return ""


class UrlRelevanceStrategy:
    """Judges relevance from the URL string alone."""

    requires_content = False

    def __init__(self, config: EnrichmentConfig | None = None) -> None:
        self._config = config or EnrichmentConfig()

    def is_relevant(self, url: str, company_name: str, content: str | None = None) -> bool:
        del content
        if not url:
            return False
        if host_matches(_host(url), self._config.press_domains):
            return True
        company_token = normalize_company_name(company_name)
        if not company_token:
            return False
        url_lower = url.lower()
        if company_token not in _NON_ALNUM.sub("", url_lower):
            return False
        return any(keyword in url_lower for keyword in self._config.url_keywords)


class ContentRelevanceStrategy:
    """Scores fetched page content plus URL signals against a threshold."""

    requires_content = True

    def __init__(self, config: EnrichmentConfig | None = None) -> None:
        self._config = config or EnrichmentConfig()

    def score(self, url: str, content: str) -> int:
        content_lower = content.lower()
        score = sum(1 for keyword in self._config.content_keywords if keyword in content_lower)
        url_lower = url.lower()
        if any(marker in url_lower for marker in self._config.press_path_markers):
            score += 1
        host = _host(url)
        if host_matches(host, self._config.top_tier_domains):
            score += 2
        if host_matches(host, self._config.major_news_domains):
            score += 1
        return score

    def is_relevant(self, url: str, company_name: str, content: str | None = None) -> bool:
        if not url or not content or not company_name.strip():
            return False
        if company_name.strip().lower() not in content.lower():
            logger.debug("relevance.company_missing", extra={"url": url})
            return False
        score = self.score(url, content)
        if score < self._config.min_relevance_score:
            logger.debug("relevance.low_score", extra={"url": url, "score": score})
            return False
        return True


def build_validation_strategy(name: str, config: EnrichmentConfig) -> ValidationStrategy:
    normalized = (name or "").strip().lower()
    if normalized == "url":
        return UrlRelevanceStrategy(config)
    if normalized == "content":
        return ContentRelevanceStrategy(config)
    raise ValueError(f"Unsupported validation strategy: {name}")
