"""LLM-backed extraction of funding amounts and investor representatives."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from app.clients.llm import ChatProvider, LLMProviderError
from app.models.fundraise import (
    MAX_PRESS_URLS,
    NOT_AVAILABLE,
    FundraiseRecord,
    InvestorContact,
    format_investor_contacts,
    parse_investor_contacts,
)
from app.services.enrichment.config import EnrichmentConfig
from app.services.enrichment.relevance import normalize_company_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

AMOUNT_NEGATIVE_PHRASES: tuple[str, ...] = ("n/a", "no amount", "not mentioned", "not found", "unknown")
INVESTOR_NEGATIVE_PHRASES: tuple[str, ...] = ("n/a", "no individual", "not found")
CURRENCY_SYMBOLS = "$€£¥₹₩₪"
CURRENCY_CODES: tuple[str, ...] = (
    "USD",
    "EUR",
    "GBP",
    "JPY",
    "CNY",
    "INR",
    "CAD",
    "AUD",
    "CHF",
    "SEK",
    "SGD",
    "HKD",
    "BRL",
    "KRW",
    "ILS",
)
_CURRENCY_CODE_PATTERN = re.compile(r"\b(?:" + "|".join(CURRENCY_CODES) + r")\b", re.IGNORECASE)
_NON_ZERO_DIGIT = re.compile(r"[1-9]")

AMOUNT_MAX_TOKENS = 50
INVESTOR_MAX_TOKENS = 300
FALLBACK_MAX_TOKENS = 600

AMOUNT_SYSTEM_PROMPT = (
    "You extract the amount raised in a funding round from press-release text. "
    'Respond with only the amount including its currency, for example "$100 million" or "€50M". '
    "If the text does not state an amount, respond with N/A."
)
INVESTOR_SYSTEM_PROMPT = (
    "You identify the individual people who represent the investors in a funding round. "
    'Respond with a comma-separated list in the form "Full Name (Firm Name)". '
    "Only include people named in the text who work for an investing firm. "
    "Exclude founders and employees of the company that raised the money. "
    "If no individual investor is named, respond with N/A."
)
INVESTOR_LOOKUP_SYSTEM_PROMPT = (
    "You are an expert in venture capital and startup investments. "
    'Respond with only a comma-separated list in the form "Full Name (Firm Name)", '
    "or N/A when you have no confident match."
)
FALLBACK_SYSTEM_PROMPT = (
    "You are a research assistant with knowledge of startup funding announcements. "
    "Answer with a single JSON object and nothing else."
)


def validate_amount(raw: str | None) -> str:
    """Return a cleaned amount, or ``N/A`` when the answer does not look like money."""
    if not raw:
        return NOT_AVAILABLE
    candidate = raw.strip(" \t\n\"'`.")
    lowered = candidate.lower()
    if len(candidate) < 2:
        return NOT_AVAILABLE
    if any(phrase in lowered for phrase in AMOUNT_NEGATIVE_PHRASES):
        return NOT_AVAILABLE
    has_currency = any(symbol in candidate for symbol in CURRENCY_SYMBOLS) or bool(
        _CURRENCY_CODE_PATTERN.search(candidate)
    )
    if not has_currency or not _NON_ZERO_DIGIT.search(candidate):
        return NOT_AVAILABLE
    return candidate


def validate_investor_contacts(raw: str | None, company_name: str) -> str:
    """Return canonical ``Name (Firm)`` text with the subject company's own people removed."""
    if not raw:
        return NOT_AVAILABLE
    candidate = raw.strip()
    lowered = candidate.lower()
    if len(candidate) < 5 or "(" not in candidate or ")" not in candidate:
        return NOT_AVAILABLE
    if any(phrase in lowered for phrase in INVESTOR_NEGATIVE_PHRASES):
        return NOT_AVAILABLE

    company_token = normalize_company_name(company_name)
    kept: list[InvestorContact] = []
    for contact in parse_investor_contacts(candidate):
        if company_token and normalize_company_name(contact.firm) == company_token:
            continue
        if contact not in kept:
            kept.append(contact)
    return format_investor_contacts(kept)


def _parse_json_payload(raw_text: str) -> dict[str, Any]:
    """Best-effort JSON decoding that tolerates code fences or prose."""
    candidate = raw_text.strip()
    if candidate.startswith("```"):
        candidate = "\n".join(line for line in candidate.splitlines() if not line.strip().startswith("```")).strip()
    if candidate.startswith("{") and candidate.endswith("}"):
        payload = json.loads(candidate)
    else:
        start = candidate.find("{")
        end = candidate.rfind("}")
        if start == -1 or end == -1 or end <= start:
            raise ValueError("Response did not contain JSON object.")
        payload = json.loads(candidate[start : end + 1])
    if not isinstance(payload, dict):
        raise ValueError("Response JSON was not an object.")
    return payload


class ProviderChain:
    """Ordered chat providers; errors and unusable answers fall through to the next one."""

    def __init__(self, providers: Sequence[ChatProvider]) -> None:
        self._providers = list(providers)

    def __len__(self) -> int:
        return len(self._providers)

    @property
    def names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    def run(
        self,
        *,
        task: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        accept: Callable[[str], T | None],
    ) -> T | None:
        for provider in self._providers:
            try:
                answer = provider.complete(
                    system_prompt=system_prompt,
                    user_prompt=user_prompt,
                    max_tokens=max_tokens,
                )
            except LLMProviderError as exc:
                logger.warning(
                    "provider.retry",
                    extra={"provider": provider.name, "task": task, "code": exc.code, "error": str(exc)},
                )
                continue
            value = accept(answer)
            if value is not None:
                logger.debug("provider.accepted", extra={"provider": provider.name, "task": task})
                return value
            logger.info(
                "provider.retry",
                extra={"provider": provider.name, "task": task, "code": "INVALID_ANSWER"},
            )
        return None


@dataclass(frozen=True)
class ExtractionResult:
    amount_raised: str = NOT_AVAILABLE
    investor_contacts: str = NOT_AVAILABLE

    @property
    def is_empty(self) -> bool:
        return self.amount_raised == NOT_AVAILABLE and self.investor_contacts == NOT_AVAILABLE


class ExtractionStrategy(Protocol):
    def extract(self, text: str, *, company_name: str, known_investors: str = "") -> ExtractionResult:
        ...


class FundingExtractor:
    """Runs the amount and investor prompts in parallel across the provider chain.

    When the press text names no investor representatives and the record lists
    known investing firms, ``lookup_chain`` is asked directly for the people at
    those firms.
    """

    def __init__(
        self,
        chain: ProviderChain,
        config: EnrichmentConfig | None = None,
        *,
        lookup_chain: ProviderChain | None = None,
    ) -> None:
        self._chain = chain
        self._config = config or EnrichmentConfig()
        self._lookup_chain = lookup_chain

    def extract(self, text: str, *, company_name: str, known_investors: str = "") -> ExtractionResult:
        content = (text or "").strip()[: self._config.max_content_chars]
        if not content:
            return ExtractionResult()
        if not len(self._chain):
            logger.info("extraction.skipped", extra={"company": company_name, "reason": "no_providers"})
            return ExtractionResult()

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="extraction") as pool:
            amount_future = pool.submit(self.extract_amount, content, company_name=company_name)
            investors_future = pool.submit(
                self.extract_investors,
                content,
                company_name=company_name,
                known_investors=known_investors,
            )
            result = ExtractionResult(
                amount_raised=amount_future.result(),
                investor_contacts=investors_future.result(),
            )
        logger.info(
            "extraction.completed",
            extra={
                "company": company_name,
                "amount_found": result.amount_raised != NOT_AVAILABLE,
                "investors_found": result.investor_contacts != NOT_AVAILABLE,
            },
        )
        return result

    def extract_amount(self, content: str, *, company_name: str) -> str:
        prompt = f"Company: {company_name}\n\nPress release text:\n{content}\n\nHow much did {company_name} raise?"
        value = self._chain.run(
            task="amount",
            system_prompt=AMOUNT_SYSTEM_PROMPT,
            user_prompt=prompt,
            max_tokens=AMOUNT_MAX_TOKENS,
            accept=_accept_amount,
        )
        return value or NOT_AVAILABLE

    def extract_investors(self, content: str, *, company_name: str, known_investors: str = "") -> str:
        hint = f"Known investing firms: {known_investors}\n" if known_investors else ""
        prompt = (
            f"Company that raised: {company_name}\n{hint}\nPress release text:\n{content}\n\n"
            "List the individual investor representatives."
        )
        value = self._chain.run(
            task="investors",
            system_prompt=INVESTOR_SYSTEM_PROMPT,
            user_prompt=prompt,
            max_tokens=INVESTOR_MAX_TOKENS,
            accept=lambda answer: _accept_investors(answer, company_name),
        )
        if value is None and known_investors:
            value = self.lookup_investors(company_name=company_name, known_investors=known_investors)
        return value or NOT_AVAILABLE

    def lookup_investors(self, *, company_name: str, known_investors: str) -> str | None:
        """Ask the model for representatives of the known firms without press text."""
        if self._lookup_chain is None or not len(self._lookup_chain):
            return None
        prompt = (
            f"Company: {company_name}\n"
            f"Known investment firms: {known_investors}\n"
            f"Year: {date.today().year}\n\n"
            "Name the partners or managing directors at these firms who are most likely "
            f"involved in the investment in {company_name}. Prioritize the most senior people."
        )
        value = self._lookup_chain.run(
            task="investor_lookup",
            system_prompt=INVESTOR_LOOKUP_SYSTEM_PROMPT,
            user_prompt=prompt,
            max_tokens=INVESTOR_MAX_TOKENS,
            accept=lambda answer: _accept_investors(answer, company_name),
        )
        logger.info(
            "extraction.investor_lookup",
            extra={"company": company_name, "found": value is not None},
        )
        return value


def _accept_amount(answer: str) -> str | None:
    value = validate_amount(answer)
    return None if value == NOT_AVAILABLE else value


def _accept_investors(answer: str, company_name: str) -> str | None:
    value = validate_investor_contacts(answer, company_name)
    return None if value == NOT_AVAILABLE else value


class FallbackPayload(BaseModel):
    """Shape of the JSON object returned by the fallback prompt."""

    urls: list[str] = Field(default_factory=list)
    investor_contacts: str = ""
    amount_raised: str = ""
    confidence_score: float = 0.0

    @field_validator("urls", mode="before")
    @classmethod
    def _coerce_urls(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str)]
        return value

    @field_validator("investor_contacts", "amount_raised", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, list):
            return ", ".join(str(item) for item in value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


@dataclass(frozen=True)
class FallbackResult:
    """Fallback values after confidence gating and field validation."""

    urls: list[str] = field(default_factory=list)
    amount_raised: str = NOT_AVAILABLE
    investor_contacts: str = NOT_AVAILABLE
    confidence_score: float = 0.0


class FallbackStrategy(Protocol):
    def lookup(self, record: FundraiseRecord) -> FallbackResult | None:
        ...


def _accept_fallback(answer: str) -> FallbackPayload | None:
    try:
        return FallbackPayload.model_validate(_parse_json_payload(answer))
    except (ValueError, ValidationError) as exc:
        logger.warning("fallback.malformed", extra={"error": str(exc)[:200]})
        return None


class FallbackLookup:
    """Asks a model directly for the round details when scraping comes up empty."""

    def __init__(self, chain: ProviderChain, config: EnrichmentConfig | None = None) -> None:
        self._chain = chain
        self._config = config or EnrichmentConfig()

    def lookup(self, record: FundraiseRecord) -> FallbackResult | None:
        if not len(self._chain):
            logger.info("fallback.skipped", extra={"company": record.company_name, "reason": "no_providers"})
            return None

        payload = self._chain.run(
            task="fallback",
            system_prompt=FALLBACK_SYSTEM_PROMPT,
            user_prompt=self._build_prompt(record),
            max_tokens=FALLBACK_MAX_TOKENS,
            accept=_accept_fallback,
        )
        if payload is None:
            return None

        threshold = self._config.fallback_confidence_threshold
        if payload.confidence_score < threshold:
            logger.info(
                "fallback.low_confidence",
                extra={
                    "company": record.company_name,
                    "confidence": payload.confidence_score,
                    "threshold": threshold,
                },
            )
            return None

        urls: list[str] = []
        for url in payload.urls:
            cleaned = url.strip()
            if cleaned.startswith(("http://", "https://")) and cleaned not in urls:
                urls.append(cleaned)
        return FallbackResult(
            urls=urls[:MAX_PRESS_URLS],
            amount_raised=validate_amount(payload.amount_raised),
            investor_contacts=validate_investor_contacts(payload.investor_contacts, record.company_name),
            confidence_score=payload.confidence_score,
        )

    @staticmethod
    def _build_prompt(record: FundraiseRecord) -> str:
        details = [f"Company: {record.company_name}"]
        if record.date_raised:
            details.append(f"Date raised: {record.date_raised}")
        if record.amount_raised and record.amount_raised.lower() != "not specified":
            details.append(f"Reported amount: {record.amount_raised}")
        if record.known_investors:
            details.append(f"Known investors: {record.known_investors}")
        return (
            "\n".join(details)
            + "\n\nFind the press release announcing this funding round. Return JSON with keys:\n"
            '  "urls": up to 3 press release URLs,\n'
            '  "investor_contacts": individual investors as "Full Name (Firm Name)", comma separated,\n'
            '  "amount_raised": the amount with currency, e.g. "$10 million",\n'
            '  "confidence_score": a number between 0 and 1.\n'
            'Use "N/A" for anything you do not know.'
        )
