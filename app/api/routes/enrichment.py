"""API endpoints for enriching fundraise records with press-release data."""

from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.models.fundraise import FundraiseRecord, RecordStateError, RecordStatus
from app.services.enrichment.orchestrator import EnrichmentOrchestrator, get_orchestrator

router = APIRouter()
logger = logging.getLogger(__name__)


class EnrichmentRequest(BaseModel):
    """Request payload describing a funding round to enrich."""

    id: str | None = Field(default=None, description="Optional record identifier; generated when absent.")
    company_name: str
    date_raised: str | float | None = None
    amount_raised: str | float | None = None
    investors: str | None = None


@router.post("/enrichment", response_model=FundraiseRecord)
def enrich_record(
    payload: EnrichmentRequest,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
) -> FundraiseRecord:
    """Run the enrichment pipeline for one record."""
    record = FundraiseRecord(
        id=payload.id or str(uuid4()),
        company_name=payload.company_name,
        date_raised=payload.date_raised,
        amount_raised=payload.amount_raised if payload.amount_raised is not None else "Not specified",
        investors=payload.investors,
    )
    try:
        outcome = orchestrator.enrich(record)
    except RecordStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc

    if outcome.record.status is RecordStatus.ERROR:
        logger.error(
            "enrichment.api_error",
            extra={"record_id": record.id, "error": outcome.record.error_message},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=outcome.record.error_message or "Enrichment failed.",
        )
    return outcome.record


@router.get("/enrichment/{record_id}", response_model=FundraiseRecord)
def get_enriched_record(
    record_id: str,
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
) -> FundraiseRecord:
    """Fetch the latest enrichment result for a record."""
    repository = orchestrator.repository
    record = repository.get(record_id) if repository is not None else None
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found.")
    return record
