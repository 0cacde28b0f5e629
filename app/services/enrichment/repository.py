"""In-process storage for the latest enrichment result of each record."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Protocol

from app.models.fundraise import FundraiseRecord

logger = logging.getLogger(__name__)


class RecordRepository(Protocol):
    """Storage contract for enriched records."""

    def get(self, record_id: str) -> FundraiseRecord | None:
        ...

    def save(self, record: FundraiseRecord) -> FundraiseRecord:
        ...


class InMemoryRecordRepository(RecordRepository):
    """Thread-safe repository used for API/local development."""

    def __init__(self) -> None:
        self._records: dict[str, FundraiseRecord] = {}
        self._lock = Lock()

    def get(self, record_id: str) -> FundraiseRecord | None:
        with self._lock:
            record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    def save(self, record: FundraiseRecord) -> FundraiseRecord:
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)
        logger.info(
            "enrichment.persisted",
            extra={"record_id": record.id, "status": record.status.value, "backend": "memory"},
        )
        return record
