"""Batch enrichment of fundraise records from a JSON export."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from collections import Counter
from collections.abc import Sequence
from pathlib import Path

from app.config import settings
from app.models.fundraise import NOT_AVAILABLE, FundraiseRecord, RecordStatus
from app.observability.metrics import metrics
from app.services.enrichment.orchestrator import EnrichmentOrchestrator, build_orchestrator
from app.services.enrichment.retry import SleepFn

logger = logging.getLogger("pipelines.enrich_batch")

DEFAULT_INPUT = Path("data/fundraises.json")
DEFAULT_OUTPUT = Path("data/fundraises_enriched.json")


def load_records(input_path: Path) -> list[FundraiseRecord]:
    """Load fundraise records from JSON, assigning row ids where missing."""
    with input_path.open("r", encoding="utf-8") as infile:
        payload = json.load(infile)
    if not isinstance(payload, list):
        raise ValueError("Input JSON must be a list of fundraise records.")
    records: list[FundraiseRecord] = []
    for index, item in enumerate(payload, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"Record {index} must be a JSON object.")
        data = dict(item)
        if not data.get("id"):
            data["id"] = f"row-{index}"
        records.append(FundraiseRecord.model_validate(data))
    return records


def persist_records(records: list[FundraiseRecord], output_path: Path) -> None:
    """Persist enriched records to disk."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as outfile:
        json.dump([record.model_dump(mode="json") for record in records], outfile, indent=2)
        outfile.write("\n")


def enrich_records(
    records: list[FundraiseRecord],
    *,
    orchestrator: EnrichmentOrchestrator,
    delay_seconds: float,
    sleep: SleepFn = time.sleep,
) -> list[FundraiseRecord]:
    """Enrich pending records one at a time, pausing between records."""
    enriched: list[FundraiseRecord] = []
    pending = sum(1 for record in records if record.status is RecordStatus.PENDING)
    metrics.gauge("batch.pending", pending)
    processed = 0
    for record in records:
        if record.status is not RecordStatus.PENDING:
            logger.info("Skipping %s (%s): status is %s.", record.id, record.company_name, record.status.value)
            enriched.append(record)
            continue
        if processed and delay_seconds > 0:
            sleep(delay_seconds)
        processed += 1
        outcome = orchestrator.enrich(record)
        enriched.append(outcome.record)
        metrics.gauge("batch.pending", pending - processed)
        logger.info(
            "Enriched %s (%s): status=%s urls=%s amount=%s",
            record.id,
            record.company_name,
            outcome.record.status.value,
            len(outcome.record.press_urls),
            outcome.record.amount_raised,
        )
    return enriched


def summarize(records: list[FundraiseRecord]) -> dict[str, int]:
    statuses = Counter(record.status.value for record in records)
    return {
        "total": len(records),
        "completed": statuses.get(RecordStatus.COMPLETED.value, 0),
        "error": statuses.get(RecordStatus.ERROR.value, 0),
        "with_press_urls": sum(1 for record in records if record.press_urls),
        "with_amount": sum(1 for record in records if record.amount_raised not in {"", NOT_AVAILABLE}),
        "with_investor_contacts": sum(1 for record in records if record.investor_contacts != NOT_AVAILABLE),
    }


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Enrich fundraise records with press-release data.")
    parser.add_argument("--input", type=Path, default=DEFAULT_INPUT, help="Path to fundraise records JSON.")
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT,
        help="Path to write enriched records JSON.",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=settings.batch_record_delay_seconds,
        help="Seconds to wait between records.",
    )
    parser.add_argument("--limit", type=int, default=None, help="Only enrich the first N records.")
    return parser.parse_args(argv)


def run_pipeline(
    *,
    input_path: Path,
    output_path: Path,
    delay_seconds: float,
    limit: int | None = None,
    orchestrator: EnrichmentOrchestrator | None = None,
    sleep: SleepFn = time.sleep,
) -> list[FundraiseRecord]:
    """Run batch enrichment end-to-end."""
    records = load_records(input_path)
    logger.info("Loaded %s fundraise records from %s.", len(records), input_path)
    if limit is not None:
        records = records[: max(0, limit)]

    close_fn = None
    if orchestrator is None:
        orchestrator = build_orchestrator()
        close_fn = orchestrator.close

    try:
        enriched = enrich_records(records, orchestrator=orchestrator, delay_seconds=delay_seconds, sleep=sleep)
    finally:
        if close_fn:
            close_fn()

    persist_records(enriched, output_path)
    logger.info("Persisted %s records to %s.", len(enriched), output_path)
    logger.info("Batch summary: %s", json.dumps(summarize(enriched), sort_keys=True))
    return enriched


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint for batch enrichment."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv or sys.argv[1:])
    try:
        run_pipeline(
            input_path=args.input,
            output_path=args.output,
            delay_seconds=args.delay,
            limit=args.limit,
        )
    except (OSError, ValueError) as exc:
        logger.error("Batch enrichment failed for %s: %s", args.input, exc)
        return 1
    except Exception as exc:  # pragma: no cover - safety net
        logger.exception("Unexpected error during batch enrichment: %s", exc)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
