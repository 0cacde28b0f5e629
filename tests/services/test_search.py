from datetime import date

import pytest

from app.clients.errors import SearchClientError, SearchRateLimitError
from app.services.enrichment import search as search_module
from app.services.enrichment.config import EnrichmentConfig
from app.services.enrichment.relevance import ContentRelevanceStrategy, UrlRelevanceStrategy
from app.services.enrichment.search import (
    KeywordSearchStrategy,
    build_alternate_queries,
    build_primary_queries,
    extract_year,
    spreadsheet_serial_to_date,
)
from tests.helpers.fakes import StubFetcher, StubSearchClient
from tests.helpers.metrics_stub import StubMetrics

BW = "https://www.businesswire.com/news/home/acme-robotics-series-a"
PRN = "https://www.prnewswire.com/news-releases/acme-robotics-raises"
REUTERS = "https://www.reuters.com/technology/acme-robotics-funding"
TECHCRUNCH = "https://techcrunch.com/2024/03/12/acme-robotics"


def _strategy(client, record_sleep, *, validator=None, fetcher=None) -> KeywordSearchStrategy:
    config = EnrichmentConfig()
    return KeywordSearchStrategy(
        client,
        validator=validator or UrlRelevanceStrategy(config),
        fetcher=fetcher or StubFetcher(),
        config=config,
        sleep=record_sleep,
    )


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("March 2023", "2023"),
        ("2021-11-04", "2021"),
        ("44927", "2023"),
        (44927.0, "2023"),
        ("45123.5", "2023"),
        ("", None),
        (None, None),
        ("soon", None),
        ("-5", None),
    ],
)
def test_extract_year(value, expected):
    assert extract_year(value) == expected


def test_spreadsheet_serial_conversion_uses_1899_epoch():
    assert spreadsheet_serial_to_date(25569) == date(1970, 1, 1)
    assert spreadsheet_serial_to_date(44927) == date(2023, 1, 1)
    assert spreadsheet_serial_to_date(1) == date(1899, 12, 31)


def test_primary_queries_include_company_year_sites_and_investors(make_record):
    record = make_record(investors="Sequoia Capital", date_raised="45123")

    queries = build_primary_queries(record, EnrichmentConfig())

    assert all('"Acme Robotics"' in query for query in queries)
    assert "Sequoia Capital" in queries[0]
    assert "-filetype:pdf" in queries[0]
    assert any("site:businesswire.com" in query and "2023" in query for query in queries)
    assert len(queries) == len(set(queries))


def test_queries_ignore_placeholder_investors_and_amounts(make_record):
    record = make_record()

    primary = build_primary_queries(record, EnrichmentConfig())
    alternate = build_alternate_queries(record, EnrichmentConfig())

    assert all("Not specified" not in query for query in primary + alternate)
    assert not any(query.startswith("Acme Robotics announces") for query in alternate)


def test_alternate_queries_use_known_amount(make_record):
    record = make_record(amount_raised="$10M")

    alternate = build_alternate_queries(record, EnrichmentConfig())

    assert alternate[0] == "Acme Robotics announces $10M funding"
    assert any("site:techcrunch.com" in query for query in alternate)


def test_collects_dedupes_and_stops_at_target(make_record, record_sleep, sleeps):
    client = StubSearchClient(
        [
            [BW, BW, "https://example.com/careers"],
            [BW, PRN],
            [REUTERS, TECHCRUNCH],
        ]
    )
    strategy = _strategy(client, record_sleep)

    urls = strategy.find_urls(make_record(), target=3)

    assert urls == [BW, PRN, REUTERS]
    assert len(client.queries) == 3
    assert sleeps == [1.5, 1.5]


def test_target_is_capped_at_three(make_record, record_sleep):
    client = StubSearchClient([[BW, PRN, REUTERS, TECHCRUNCH]])
    strategy = _strategy(client, record_sleep)

    assert strategy.find_urls(make_record(), target=10) == [BW, PRN, REUTERS]


def test_rate_limit_aborts_and_returns_partial(monkeypatch, make_record, record_sleep):
    stub = StubMetrics()
    monkeypatch.setattr(search_module, "metrics", stub)
    client = StubSearchClient([[BW], SearchRateLimitError("SerpApi"), [PRN]])
    strategy = _strategy(client, record_sleep)

    urls = strategy.find_urls(make_record(), target=3)

    assert urls == [BW]
    assert len(client.queries) == 2
    assert stub.counted("search.rate_limited") == 1


def test_rate_limit_on_every_query_returns_empty(make_record, record_sleep):
    client = StubSearchClient([SearchRateLimitError("SerpApi")] * 6)
    strategy = _strategy(client, record_sleep)

    assert strategy.find_urls(make_record(), target=3) == []
    assert len(client.queries) == 1


def test_other_errors_skip_to_next_query(make_record, record_sleep):
    client = StubSearchClient([SearchClientError("bad gateway"), [PRN]])
    strategy = _strategy(client, record_sleep)

    assert strategy.find_urls(make_record(), target=1) == [PRN]
    assert len(client.queries) == 2


def test_missing_client_returns_empty_without_calls(make_record, record_sleep, sleeps):
    strategy = _strategy(None, record_sleep)

    assert strategy.enabled is False
    assert strategy.find_urls(make_record(), target=3) == []
    assert strategy.find_additional_urls(make_record(), target=3, exclude=[]) == []
    assert sleeps == []


def test_additional_urls_skip_excluded(make_record, record_sleep):
    client = StubSearchClient([[BW, PRN]])
    strategy = _strategy(client, record_sleep)

    assert strategy.find_additional_urls(make_record(), target=2, exclude=[BW]) == [PRN]


def test_document_links_are_rejected(make_record, record_sleep):
    client = StubSearchClient([["https://www.businesswire.com/files/acme-release.pdf", PRN]])
    strategy = _strategy(client, record_sleep)

    assert strategy.find_urls(make_record(), target=1) == [PRN]


def test_content_validation_fetches_candidates(make_record, record_sleep):
    fetcher = StubFetcher({PRN: "Acme Robotics raises $10 million in funding round"})
    client = StubSearchClient([["https://blog.example.com/acme", PRN]])
    strategy = _strategy(client, record_sleep, validator=ContentRelevanceStrategy(), fetcher=fetcher)

    assert strategy.find_urls(make_record(), target=1) == [PRN]
    assert fetcher.fetched == ["https://blog.example.com/acme", PRN]
