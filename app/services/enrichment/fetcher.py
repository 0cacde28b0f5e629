"""Fetch article pages with rotating client identities and a minimum-content gate."""

from __future__ import annotations

import logging
import random
import time
from collections import OrderedDict
from threading import Lock
from urllib.parse import urlparse

import httpx

from app.observability.metrics import metrics
from app.services.enrichment.config import EnrichmentConfig, host_matches
from app.services.enrichment.html_text import extract_text_from_html
from app.services.enrichment.retry import RetryPolicy, SleepFn

logger = logging.getLogger(__name__)

USER_AGENTS: tuple[str, ...] = (
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 13_4_1) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
    ),
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.0.0"
    ),
    "Mozilla/5.0 (compatible; Googlebot/2.1; +http://www.google.com/bot.html)",
)

BASE_HEADERS: dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "max-age=0",
    "Upgrade-Insecure-Requests": "1",
}

_CACHE_SIZE = 256


class _AttemptFailed(Exception):
    """Internal signal that a single fetch attempt did not yield usable text."""


class ContentFetcher:
    """Retrieves readable article text; failures degrade to an empty string and are not cached."""

    def __init__(
        self,
        config: EnrichmentConfig | None = None,
        *,
        policy: RetryPolicy | None = None,
        http_client: httpx.Client | None = None,
        timeout: float = 15.0,
        user_agents: tuple[str, ...] = USER_AGENTS,
        sleep: SleepFn | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._config = config or EnrichmentConfig()
        self._policy = policy or self._config.fetch_policy
        if len(user_agents) < 1:
            raise ValueError("At least one user agent is required.")
        self._user_agents = user_agents
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._sleep = sleep or time.sleep
        self._rng = rng or random.Random()
        self._cache: OrderedDict[str, str] = OrderedDict()
        self._cache_hits = 0
        self._cache_misses = 0
        self._lock = Lock()

    @property
    def cache_stats(self) -> dict[str, int]:
        with self._lock:
            return {"hits": self._cache_hits, "misses": self._cache_misses}

    def close(self) -> None:
        if self._owns_http_client:
            self._http.close()

    def fetch(self, url: str) -> str:
        """Return extracted text for ``url`` or ``""`` when every attempt fails."""
        with self._lock:
            if url in self._cache:
                self._cache_hits += 1
                self._cache.move_to_end(url)
                return self._cache[url]
            self._cache_misses += 1

        text = self._fetch_uncached(url)
        if not text:
            return text

        with self._lock:
            self._cache[url] = text
            while len(self._cache) > _CACHE_SIZE:
                self._cache.popitem(last=False)
        return text

    def _fetch_uncached(self, url: str) -> str:
        parsed = urlparse(url or "")
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            logger.info("fetch.skipped", extra={"url": url, "reason": "invalid_url"})
            return ""
        if host_matches(parsed.netloc, self._config.blocked_domains):
            logger.info("fetch.skipped", extra={"url": url, "reason": "blocked_domain"})
            return ""

        identities = self._pick_user_agents(self._policy.max_attempts)
        for attempt, delay in self._policy.attempts():
            user_agent = identities[(attempt - 1) % len(identities)]
            try:
                text = self._attempt(url, user_agent)
            except _AttemptFailed as exc:
                logger.warning(
                    "fetch.attempt_failed",
                    extra={
                        "url": url,
                        "attempt": attempt,
                        "max_attempts": self._policy.max_attempts,
                        "reason": str(exc),
                        "user_agent": user_agent[:60],
                    },
                )
                if attempt < self._policy.max_attempts:
                    self._sleep(delay)
                continue
            logger.info("fetch.success", extra={"url": url, "attempt": attempt, "chars": len(text)})
            return text

        metrics.increment("fetch.failure", tags={"host": parsed.netloc.lower()})
        logger.warning("All %s fetch attempts failed for %s.", self._policy.max_attempts, url)
        return ""

    def _attempt(self, url: str, user_agent: str) -> str:
        headers = {**BASE_HEADERS, "User-Agent": user_agent}
        try:
            response = self._http.get(url, headers=headers, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise _AttemptFailed(f"{type(exc).__name__}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise _AttemptFailed(f"HTTP {response.status_code}")

        text = extract_text_from_html(response.text)
        if len(text) < self._config.min_content_length:
            raise _AttemptFailed(f"content too short ({len(text)} chars)")
        return text

    def _pick_user_agents(self, count: int) -> list[str]:
        """Distinct identities per attempt while the pool lasts."""
        pool = list(self._user_agents)
        self._rng.shuffle(pool)
        if count <= len(pool):
            return pool[:count]
        return [pool[i % len(pool)] for i in range(count)]
