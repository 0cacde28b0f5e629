"""Drives one fundraise record through search, validation, extraction and fallback."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from app.clients.google_search import GoogleSearchClient
from app.clients.llm import build_providers
from app.clients.serpapi import SerpApiClient
from app.config import Settings, settings
from app.models.fundraise import NOT_AVAILABLE, FundraiseRecord, RecordStateError, RecordStatus
from app.observability.metrics import metrics
from app.services.enrichment.config import EnrichmentConfig
from app.services.enrichment.errors import EnrichmentError, EnrichmentInputError
from app.services.enrichment.extraction import (
    ExtractionResult,
    ExtractionStrategy,
    FallbackLookup,
    FallbackResult,
    FallbackStrategy,
    FundingExtractor,
    ProviderChain,
)
from app.services.enrichment.fetcher import ContentFetcher
from app.services.enrichment.relevance import ValidationStrategy, build_validation_strategy
from app.services.enrichment.repository import InMemoryRecordRepository, RecordRepository
from app.services.enrichment.retry import SleepFn
from app.services.enrichment.search import KeywordSearchStrategy, SearchClientProtocol, SearchStrategy

logger = logging.getLogger(__name__)


class EnrichmentStage(str, Enum):
    PENDING = "pending"
    SEARCHING = "searching"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    FALLBACK_GENERATING = "fallback_generating"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class EnrichmentOutcome:
    """The enriched record plus the stages it passed through."""

    record: FundraiseRecord
    stages: list[EnrichmentStage] = field(default_factory=list)
    fallback_used: bool = False

    @property
    def succeeded(self) -> bool:
        return self.record.status is RecordStatus.COMPLETED


class EnrichmentOrchestrator:
    """Sequential enrichment of a single record; only the two extraction prompts overlap."""

    def __init__(
        self,
        *,
        search: SearchStrategy,
        validator: ValidationStrategy,
        fetcher: ContentFetcher,
        extractor: ExtractionStrategy,
        fallback: FallbackStrategy | None = None,
        config: EnrichmentConfig | None = None,
        repository: RecordRepository | None = None,
        sleep: SleepFn | None = None,
    ) -> None:
        self._search = search
        self._validator = validator
        self._fetcher = fetcher
        self._extractor = extractor
        self._fallback = fallback
        self._config = config or EnrichmentConfig()
        self._repository = repository
        self._sleep = sleep or time.sleep

    @property
    def repository(self) -> RecordRepository | None:
        return self._repository

    def close(self) -> None:
        self._search.close()
        self._fetcher.close()

    def enrich(self, record: FundraiseRecord) -> EnrichmentOutcome:
        """Enrich a pending record; the input object is left untouched."""
        if record.status is not RecordStatus.PENDING:
            raise RecordStateError(
                f"Record {record.id} must be pending to enrich (found {record.status.value}).",
            )

        working = record.model_copy(deep=True)
        outcome = EnrichmentOutcome(record=working, stages=[EnrichmentStage.PENDING])
        working.transition_to(RecordStatus.PROCESSING)
        tags = {"validation": type(self._validator).__name__}
        start = time.perf_counter()
        try:
            if not working.company_name.strip():
                raise EnrichmentInputError("company_name is required.", code="EMPTY_COMPANY_NAME")
            self._run(working, outcome)
        except EnrichmentError as exc:
            self._fail(outcome, str(exc), exc.code, tags)
        except Exception as exc:  # noqa: BLE001 - any failure becomes an error status
            logger.exception("Unexpected failure enriching record %s", working.id)
            self._fail(outcome, str(exc) or type(exc).__name__, "UNEXPECTED", tags)
        else:
            working.error_message = None
            working.transition_to(RecordStatus.COMPLETED)
            outcome.stages.append(EnrichmentStage.COMPLETED)
            metrics.increment("enrichment.success", tags=tags)
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            metrics.timing("enrichment.latency_ms", duration_ms, tags=tags)

        logger.info(
            "enrichment.completed",
            extra={
                "record_id": working.id,
                "company": working.company_name,
                "status": working.status.value,
                "press_urls": len(working.press_urls),
                "amount_found": working.amount_raised != NOT_AVAILABLE,
                "investors_found": working.investor_contacts != NOT_AVAILABLE,
                "fallback_used": outcome.fallback_used,
                "duration_ms": round(duration_ms, 2),
            },
        )
        if self._repository is not None:
            self._repository.save(working)
        return outcome

    def _fail(self, outcome: EnrichmentOutcome, message: str, code: str, tags: dict[str, str]) -> None:
        outcome.record.error_message = message
        outcome.record.transition_to(RecordStatus.ERROR)
        outcome.stages.append(EnrichmentStage.ERROR)
        metrics.increment("enrichment.errors", tags={**tags, "code": code})
        logger.warning(
            "enrichment.failed",
            extra={"record_id": outcome.record.id, "code": code, "error": message},
        )

    def _run(self, record: FundraiseRecord, outcome: EnrichmentOutcome) -> None:
        target = self._config.target_url_count

        outcome.stages.append(EnrichmentStage.SEARCHING)
        urls = _unique(self._search.find_urls(record, target=target))[:target]

        outcome.stages.append(EnrichmentStage.VALIDATING)
        if len(urls) < target and self._search.enabled:
            urls = self._top_up(record, urls, target)

        extraction = ExtractionResult()
        if urls:
            outcome.stages.append(EnrichmentStage.EXTRACTING)
            extraction = self._extract(record, urls)

        amount = extraction.amount_raised
        contacts = extraction.investor_contacts
        if self._fallback is not None and (not urls or extraction.is_empty):
            outcome.stages.append(EnrichmentStage.FALLBACK_GENERATING)
            result = self._fallback.lookup(record)
            if result is not None:
                merged_urls = (urls + self._validated_fallback_urls(record, result, exclude=urls))[:target]
                merged_amount = amount if amount != NOT_AVAILABLE else result.amount_raised
                merged_contacts = contacts if contacts != NOT_AVAILABLE else result.investor_contacts
                if (merged_urls, merged_amount, merged_contacts) != (urls, amount, contacts):
                    outcome.fallback_used = True
                    metrics.increment("enrichment.fallback")
                urls, amount, contacts = merged_urls, merged_amount, merged_contacts

        record.set_press_urls(urls)
        record.amount_raised = amount
        record.investor_contacts = contacts

    def _top_up(self, record: FundraiseRecord, urls: list[str], target: int) -> list[str]:
        found = list(urls)
        policy = self._config.search_policy
        for attempt, delay in policy.attempts():
            missing = target - len(found)
            if missing <= 0:
                break
            additional = self._search.find_additional_urls(record, target=missing, exclude=found)
            found.extend(url for url in _unique(additional) if url not in found)
            if len(found) >= target:
                break
            if attempt < policy.max_attempts:
                logger.info(
                    "search.top_up_retry",
                    extra={"company": record.company_name, "attempt": attempt, "found": len(found)},
                )
                self._sleep(delay)
        return found[:target]

    def _extract(self, record: FundraiseRecord, urls: list[str]) -> ExtractionResult:
        texts = [self._fetcher.fetch(url) for url in urls]
        combined = "\n\n".join(text for text in texts if text)
        if not combined:
            logger.info("extraction.no_content", extra={"company": record.company_name, "urls": len(urls)})
            return ExtractionResult()
        return self._extractor.extract(
            combined,
            company_name=record.company_name,
            known_investors=record.known_investors,
        )

    def _validated_fallback_urls(
        self,
        record: FundraiseRecord,
        result: FallbackResult,
        *,
        exclude: list[str],
    ) -> list[str]:
        accepted: list[str] = []
        for url in result.urls:
            if url in exclude or url in accepted:
                continue
            content = self._fetcher.fetch(url) if self._validator.requires_content else None
            if self._validator.is_relevant(url, record.company_name, content):
                accepted.append(url)
            else:
                logger.info("fallback.url_rejected", extra={"company": record.company_name, "url": url})
        return accepted


def _unique(urls: list[str]) -> list[str]:
    ordered: list[str] = []
    for url in urls:
        if url and url != NOT_AVAILABLE and url not in ordered:
            ordered.append(url)
    return ordered


def build_search_client(config: Settings) -> SearchClientProtocol | None:
    provider = config.configured_search_provider
    if provider == "google":
        return GoogleSearchClient(config.google_api_key or "", config.google_cx or "")
    if provider == "serpapi":
        return SerpApiClient(config.serp_api_key or "")
    logger.info("No search API key configured; press URL search is disabled.")
    return None


def build_orchestrator(
    config: Settings | None = None,
    *,
    repository: RecordRepository | None = None,
    sleep: SleepFn | None = None,
) -> EnrichmentOrchestrator:
    """Wire the strategies selected by configuration into an orchestrator."""
    resolved = config or settings
    enrichment_config = EnrichmentConfig.from_settings(resolved)
    fetcher = ContentFetcher(
        enrichment_config,
        timeout=resolved.fetch_timeout_seconds,
        sleep=sleep,
    )
    validator = build_validation_strategy(resolved.validation_strategy, enrichment_config)
    search = KeywordSearchStrategy(
        build_search_client(resolved),
        validator=validator,
        fetcher=fetcher,
        config=enrichment_config,
        sleep=sleep,
    )
    extractor = FundingExtractor(
        ProviderChain(build_providers(resolved, resolved.extraction_provider_order)),
        enrichment_config,
        lookup_chain=ProviderChain(
            build_providers(resolved, resolved.investor_lookup_provider_order, purpose="fallback")
        ),
    )
    fallback = FallbackLookup(
        ProviderChain(build_providers(resolved, resolved.fallback_provider_order, purpose="fallback")),
        enrichment_config,
    )
    return EnrichmentOrchestrator(
        search=search,
        validator=validator,
        fetcher=fetcher,
        extractor=extractor,
        fallback=fallback,
        config=enrichment_config,
        repository=repository,
        sleep=sleep,
    )


_ORCHESTRATOR_INSTANCE: EnrichmentOrchestrator | None = None


def get_orchestrator() -> EnrichmentOrchestrator:
    """Singleton accessor used by API routes."""
    global _ORCHESTRATOR_INSTANCE  # noqa: PLW0603
    if _ORCHESTRATOR_INSTANCE is None:
        _ORCHESTRATOR_INSTANCE = build_orchestrator(repository=InMemoryRecordRepository())
    return _ORCHESTRATOR_INSTANCE
