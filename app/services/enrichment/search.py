"""Keyword search for press releases about a funding round."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Collection, Sequence
from datetime import date, datetime, timedelta
from typing import Any, Protocol

from app.clients.errors import SearchClientError, SearchRateLimitError
from app.models.fundraise import MAX_PRESS_URLS, NOT_AVAILABLE, FundraiseRecord
from app.observability.metrics import metrics
from app.services.enrichment.config import EnrichmentConfig
from app.services.enrichment.fetcher import ContentFetcher
from app.services.enrichment.relevance import ValidationStrategy
from app.services.enrichment.retry import SleepFn

logger = logging.getLogger(__name__)

_YEAR_PATTERN = re.compile(r"\b(19\d{2}|20\d{2})\b")
_AMOUNT_HINT = re.compile(r"\d")

UNIX_EPOCH = datetime(1970, 1, 1)
# Days between the spreadsheet epoch (1899-12-30) and the Unix epoch.
SPREADSHEET_EPOCH_OFFSET_DAYS = 25569
_MAX_SPREADSHEET_SERIAL = 2958465  # 9999-12-31


class SearchClientProtocol(Protocol):
    """Subset of search client behavior used by the strategy."""

    def search(self, *, query: str, num: int) -> list[dict[str, Any]]:
        ...

    def close(self) -> None:
        ...


class SearchStrategy(Protocol):
    """Produces validated press-release URLs for a record."""

    enabled: bool

    def find_urls(self, record: FundraiseRecord, *, target: int) -> list[str]:
        ...

    def find_additional_urls(
        self,
        record: FundraiseRecord,
        *,
        target: int,
        exclude: Collection[str],
    ) -> list[str]:
        ...

    def close(self) -> None:
        ...


def spreadsheet_serial_to_date(serial: float) -> date:
    """Convert a spreadsheet day serial into a calendar date."""
    return (UNIX_EPOCH + timedelta(days=serial - SPREADSHEET_EPOCH_OFFSET_DAYS)).date()


def extract_year(date_raised: str | float | int | None) -> str | None:
    """Pull a 4-digit year out of free text, or decode a spreadsheet serial."""
    if date_raised is None:
        return None
    text = str(date_raised).strip()
    if not text:
        return None
    match = _YEAR_PATTERN.search(text)
    if match:
        return match.group(1)
    try:
        serial = float(text)
    except ValueError:
        return None
    if not 0 < serial <= _MAX_SPREADSHEET_SERIAL:
        return None
    return str(spreadsheet_serial_to_date(serial).year)


def _compact(query: str) -> str:
    return " ".join(query.split())


def _dedupe(queries: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for query in queries:
        compacted = _compact(query)
        if compacted and compacted not in seen:
            seen.add(compacted)
            ordered.append(compacted)
    return ordered


def _known_amount(record: FundraiseRecord) -> str:
    value = (record.amount_raised or "").strip()
    if not value or value == NOT_AVAILABLE or not _AMOUNT_HINT.search(value):
        return ""
    return value


def build_primary_queries(record: FundraiseRecord, config: EnrichmentConfig) -> list[str]:
    """Focused phrasings: quoted company, funding keywords, wire-service sites, year."""
    company = record.company_name.strip()
    year = extract_year(record.date_raised) or ""
    investors = record.known_investors
    wire_sites = " OR ".join(f"site:{domain}" for domain in config.top_tier_domains)
    news_sites = " OR ".join(f"site:{domain}" for domain in config.major_news_domains[:2])
    excluded = " ".join(f"-filetype:{ext}" for ext in config.excluded_filetypes)
    return _dedupe(
        [
            f'"{company}" funding round {investors} press release {excluded}',
            f'"{company}" funding press release {year} {wire_sites}',
            f'"{company}" raises funding {year}',
            f'"{company}" investment announcement {year} {news_sites}',
        ]
    )


def build_alternate_queries(record: FundraiseRecord, config: EnrichmentConfig) -> list[str]:
    """Broader phrasings used to top up when the focused queries come up short."""
    company = record.company_name.strip()
    year = extract_year(record.date_raised) or ""
    amount = _known_amount(record)
    news_sites = " OR ".join(
        f"site:{domain}" for domain in (*config.major_news_domains, *config.top_tier_domains[:2])
    )
    queries = [
        f"{company} announces {amount} funding" if amount else "",
        f"{company} secures investment {record.known_investors}",
        f"{company} investment news {year}",
        f"{company} financing round announcement",
        f"{company} raises capital press release",
        f"{company} funding news {news_sites}",
    ]
    return _dedupe(queries)


class KeywordSearchStrategy:
    """Runs query variants against a search API and keeps relevant links."""

    def __init__(
        self,
        client: SearchClientProtocol | None,
        *,
        validator: ValidationStrategy,
        fetcher: ContentFetcher,
        config: EnrichmentConfig | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._client = client
        self._validator = validator
        self._fetcher = fetcher
        self._config = config or EnrichmentConfig()
        self._sleep = sleep or time.sleep

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def find_urls(self, record: FundraiseRecord, *, target: int) -> list[str]:
        return self._collect(record, build_primary_queries(record, self._config), target=target, exclude=())

    def find_additional_urls(
        self,
        record: FundraiseRecord,
        *,
        target: int,
        exclude: Collection[str],
    ) -> list[str]:
        return self._collect(
            record,
            build_alternate_queries(record, self._config),
            target=target,
            exclude=exclude,
        )

    def validate(self, url: str, company_name: str) -> bool:
        """Apply the validation strategy, fetching content when it needs it."""
        lowered = url.lower().split("?", 1)[0]
        if any(lowered.endswith(f".{ext}") for ext in self._config.excluded_filetypes):
            return False
        content = self._fetcher.fetch(url) if self._validator.requires_content else None
        return self._validator.is_relevant(url, company_name, content)

    def _collect(
        self,
        record: FundraiseRecord,
        queries: Sequence[str],
        *,
        target: int,
        exclude: Collection[str],
    ) -> list[str]:
        limit = min(target, MAX_PRESS_URLS)
        if limit <= 0:
            return []
        if self._client is None:
            logger.info("search.skipped", extra={"company": record.company_name, "reason": "no_search_client"})
            return []

        found: list[str] = []
        seen: set[str] = set(exclude)
        for index, query in enumerate(queries):
            if len(found) >= limit:
                break
            if index:
                self._sleep(self._config.query_delay_seconds)
            logger.debug("Running search query: %s", query)
            try:
                results = self._client.search(query=query, num=self._config.results_per_query)
            except SearchRateLimitError as exc:
                metrics.increment("search.rate_limited", tags={"provider": exc.provider})
                logger.warning(
                    "Search rate limited (%s); returning %s partial result(s) for %s.",
                    exc.code,
                    len(found),
                    record.company_name,
                )
                break
            except SearchClientError as exc:
                logger.warning("Search query failed (%s): %s", exc.code, exc)
                continue

            for result in results:
                link = (result.get("link") or "").strip()
                if not link or link in seen:
                    continue
                seen.add(link)
                if self.validate(link, record.company_name):
                    found.append(link)
                    if len(found) >= limit:
                        break

        logger.info(
            "search.completed",
            extra={"company": record.company_name, "queries": len(queries), "found": len(found)},
        )
        return found[:limit]
