"""Keyword, domain and threshold configuration shared by the enrichment components."""

from __future__ import annotations

from dataclasses import dataclass, field

from app.config import Settings
from app.services.enrichment.retry import RetryPolicy

PRESS_DOMAINS: tuple[str, ...] = (
    "businesswire.com",
    "prnewswire.com",
    "globenewswire.com",
    "techcrunch.com",
    "reuters.com",
    "bloomberg.com",
    "venturebeat.com",
    "forbes.com",
    "crunchbase.com",
    "finsmes.com",
    "axios.com",
    "fortune.com",
    "sifted.eu",
    "spacenews.com",
)
TOP_TIER_PRESS_DOMAINS: tuple[str, ...] = ("businesswire.com", "prnewswire.com", "globenewswire.com")
MAJOR_NEWS_DOMAINS: tuple[str, ...] = ("techcrunch.com", "reuters.com", "bloomberg.com")
BLOCKED_DOMAINS: tuple[str, ...] = (
    "linkedin.com",
    "facebook.com",
    "twitter.com",
    "x.com",
    "instagram.com",
    "youtube.com",
    "tiktok.com",
)
URL_FUNDING_KEYWORDS: tuple[str, ...] = ("funding", "investment", "raise", "round", "announcement")
CONTENT_FUNDING_KEYWORDS: tuple[str, ...] = ("funding", "investment", "raises", "raised", "round", "capital")
PRESS_PATH_MARKERS: tuple[str, ...] = ("press-release", "news")
EXCLUDED_FILETYPES: tuple[str, ...] = ("pdf", "doc", "docx", "xls", "ppt", "txt", "rtf")


@dataclass(frozen=True)
class EnrichmentConfig:
    """Everything the pipeline tunes, passed explicitly instead of living in module globals."""

    press_domains: tuple[str, ...] = PRESS_DOMAINS
    top_tier_domains: tuple[str, ...] = TOP_TIER_PRESS_DOMAINS
    major_news_domains: tuple[str, ...] = MAJOR_NEWS_DOMAINS
    blocked_domains: tuple[str, ...] = BLOCKED_DOMAINS
    url_keywords: tuple[str, ...] = URL_FUNDING_KEYWORDS
    content_keywords: tuple[str, ...] = CONTENT_FUNDING_KEYWORDS
    press_path_markers: tuple[str, ...] = PRESS_PATH_MARKERS
    excluded_filetypes: tuple[str, ...] = EXCLUDED_FILETYPES
    min_relevance_score: int = 2
    target_url_count: int = 3
    results_per_query: int = 6
    query_delay_seconds: float = 1.5
    min_content_length: int = 200
    max_content_chars: int = 8000
    fallback_confidence_threshold: float = 0.8
    search_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy.fixed(max_attempts=3, delay=2.0))
    fetch_policy: RetryPolicy = field(default_factory=lambda: RetryPolicy.fixed(max_attempts=3, delay=1.0))

    @classmethod
    def from_settings(cls, config: Settings) -> "EnrichmentConfig":
        return cls(
            results_per_query=config.search_results_per_query,
            query_delay_seconds=config.search_query_delay_seconds,
            min_content_length=config.fetch_min_content_length,
            max_content_chars=config.extraction_max_content_chars,
            fallback_confidence_threshold=config.fallback_confidence_threshold,
            search_policy=RetryPolicy.fixed(
                max_attempts=config.search_retry_attempts,
                delay=config.search_retry_backoff_seconds,
            ),
            fetch_policy=RetryPolicy.fixed(
                max_attempts=config.fetch_attempts,
                delay=config.fetch_retry_delay_seconds,
            ),
        )


def host_matches(host: str, domains: tuple[str, ...]) -> bool:
    """True when ``host`` is one of ``domains`` or a subdomain of one."""
    host = host.lower().split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return any(host == domain or host.endswith(f".{domain}") for domain in domains)
