from __future__ import annotations

from contextlib import contextmanager

from app.main import app
from app.services.enrichment.config import EnrichmentConfig
from app.services.enrichment.extraction import ExtractionResult
from app.services.enrichment.orchestrator import EnrichmentOrchestrator, get_orchestrator
from app.services.enrichment.relevance import UrlRelevanceStrategy
from app.services.enrichment.repository import InMemoryRecordRepository
from tests.helpers.fakes import StubFetcher

BW = "https://www.businesswire.com/news/home/acme-robotics-funding"


class _Search:
    enabled = False

    def __init__(self, urls: list[str]) -> None:
        self._urls = urls

    def find_urls(self, record, *, target):
        return list(self._urls)

    def find_additional_urls(self, record, *, target, exclude):
        return []

    def close(self):
        pass


class _Extractor:
    def extract(self, text, *, company_name, known_investors=""):
        return ExtractionResult(amount_raised="$10 million", investor_contacts="John Smith (Acme Ventures)")


def _build_orchestrator() -> EnrichmentOrchestrator:
    return EnrichmentOrchestrator(
        search=_Search([BW]),
        validator=UrlRelevanceStrategy(),
        fetcher=StubFetcher({BW: "Acme Robotics raised $10 million."}),
        extractor=_Extractor(),
        fallback=None,
        config=EnrichmentConfig(),
        repository=InMemoryRecordRepository(),
        sleep=lambda _: None,
    )


@contextmanager
def _override_orchestrator(orchestrator: EnrichmentOrchestrator):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_orchestrator, None)


def test_enrich_and_fetch_round_trip(client):
    orchestrator = _build_orchestrator()
    payload = {
        "id": "rec-api-1",
        "company_name": "Acme Robotics",
        "date_raised": 45123,
        "amount_raised": "Not specified",
        "investors": "Acme Ventures",
    }
    with _override_orchestrator(orchestrator):
        response = client.post("/api/enrichment", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["press_url_1"] == BW
        assert body["press_url_2"] == "N/A"
        assert body["amount_raised"] == "$10 million"
        assert body["investor_contacts"] == "John Smith (Acme Ventures)"
        assert body["date_raised"] == "45123"

        fetched = client.get("/api/enrichment/rec-api-1")
        assert fetched.status_code == 200
        assert fetched.json()["press_url_1"] == BW


def test_generated_id_when_missing(client):
    with _override_orchestrator(_build_orchestrator()):
        response = client.post("/api/enrichment", json={"company_name": "Acme Robotics"})
        assert response.status_code == 200
        assert response.json()["id"]


def test_orchestration_failure_returns_500(client):
    with _override_orchestrator(_build_orchestrator()):
        response = client.post("/api/enrichment", json={"company_name": "  "})
        assert response.status_code == 500
        assert response.json()["detail"] == "company_name is required."


def test_unknown_record_returns_404(client):
    with _override_orchestrator(_build_orchestrator()):
        response = client.get("/api/enrichment/missing")
        assert response.status_code == 404


def test_health_reports_providers(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert set(body["providers"]) == {"search", "openai", "groq"}
