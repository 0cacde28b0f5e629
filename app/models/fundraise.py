"""Domain models for fundraise records moving through enrichment."""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Final, NamedTuple

from pydantic import BaseModel, Field, field_validator

NOT_AVAILABLE: Final[str] = "N/A"
MAX_PRESS_URLS: Final[int] = 3

_CONTACT_PATTERN = re.compile(r"([^,()]+?)\s*\(([^()]+)\)")
_NAME_STRIP_CHARS = " \t\n,;:\"'-*•"
_LEADING_CONJUNCTION = re.compile(r"^(?:and|&)\s+", flags=re.IGNORECASE)
_LIST_MARKER = re.compile(r"^\d+[.)]\s*")


class RecordStatus(str, Enum):
    """Lifecycle states of a fundraise record."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


ALLOWED_TRANSITIONS: Final[dict[RecordStatus, frozenset[RecordStatus]]] = {
    RecordStatus.PENDING: frozenset({RecordStatus.PROCESSING}),
    RecordStatus.PROCESSING: frozenset({RecordStatus.COMPLETED, RecordStatus.ERROR}),
    RecordStatus.COMPLETED: frozenset(),
    RecordStatus.ERROR: frozenset(),
}


class RecordStateError(RuntimeError):
    """Raised when a record is moved through an illegal status transition."""

    def __init__(self, message: str, code: str = "INVALID_STATUS_TRANSITION") -> None:
        super().__init__(message)
        self.code = code


class InvestorContact(NamedTuple):
    """Individual investor representative and their firm."""

    name: str
    firm: str

    def __str__(self) -> str:
        return f"{self.name} ({self.firm})"


class FundraiseRecord(BaseModel):
    """A funding round awaiting or carrying enrichment results."""

    id: str
    company_name: str
    date_raised: str = ""
    amount_raised: str = "Not specified"
    investors: str = ""
    press_url_1: str = NOT_AVAILABLE
    press_url_2: str = NOT_AVAILABLE
    press_url_3: str = NOT_AVAILABLE
    investor_contacts: str = NOT_AVAILABLE
    status: RecordStatus = RecordStatus.PENDING
    error_message: str | None = Field(default=None, description="Populated when status is error.")

    model_config = {"from_attributes": True}

    @field_validator("date_raised", mode="before")
    @classmethod
    def _coerce_date(cls, value: Any) -> Any:
        # Spreadsheet exports hand over serial numbers (e.g. 45123.0).
        if value is None:
            return ""
        if isinstance(value, bool):
            return str(value)
        if isinstance(value, float):
            return str(int(value)) if value.is_integer() else str(value)
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("amount_raised", "investors", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("press_url_1", "press_url_2", "press_url_3", "investor_contacts", mode="before")
    @classmethod
    def _normalize_absent(cls, value: Any) -> Any:
        if value is None:
            return NOT_AVAILABLE
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or stripped.upper() == NOT_AVAILABLE:
                return NOT_AVAILABLE
            return stripped
        return value

    @property
    def press_urls(self) -> list[str]:
        """Populated press URLs, in slot order."""
        return [
            url
            for url in (self.press_url_1, self.press_url_2, self.press_url_3)
            if url != NOT_AVAILABLE
        ]

    @property
    def known_investors(self) -> str:
        """Known investors with spreadsheet placeholders removed."""
        value = (self.investors or "").strip()
        if value.lower() in {"not specified", "n/a", "unknown", "none"}:
            return ""
        return value

    def set_press_urls(self, urls: list[str]) -> None:
        """Fill the three press URL slots, padding with the absence marker."""
        slots = [url for url in urls if url and url != NOT_AVAILABLE][:MAX_PRESS_URLS]
        slots.extend([NOT_AVAILABLE] * (MAX_PRESS_URLS - len(slots)))
        self.press_url_1, self.press_url_2, self.press_url_3 = slots

    def transition_to(self, status: RecordStatus) -> None:
        """Advance the lifecycle, rejecting anything outside pending → processing → terminal."""
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise RecordStateError(
                f"Record {self.id} cannot move from {self.status.value} to {status.value}.",
            )
        self.status = status


def parse_investor_contacts(value: str | None) -> list[InvestorContact]:
    """Parse a `Name (Firm), Name (Firm)` string into contact pairs."""
    if not value or value.strip() == NOT_AVAILABLE:
        return []
    contacts: list[InvestorContact] = []
    for match in _CONTACT_PATTERN.finditer(value):
        name = _LIST_MARKER.sub("", match.group(1).strip(_NAME_STRIP_CHARS))
        name = _LEADING_CONJUNCTION.sub("", name.strip(_NAME_STRIP_CHARS))
        firm = " ".join(match.group(2).split())
        if name and firm:
            contacts.append(InvestorContact(name=" ".join(name.split()), firm=firm))
    return contacts


def format_investor_contacts(contacts: list[InvestorContact]) -> str:
    """Render contact pairs in the display convention, or the absence marker."""
    if not contacts:
        return NOT_AVAILABLE
    return ", ".join(str(contact) for contact in contacts)
