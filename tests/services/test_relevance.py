import pytest

from app.services.enrichment.config import EnrichmentConfig
from app.services.enrichment.relevance import (
    ContentRelevanceStrategy,
    UrlRelevanceStrategy,
    build_validation_strategy,
    normalize_company_name,
)


def test_normalize_company_name_strips_punctuation():
    assert normalize_company_name("Acme Robotics, Inc.") == "acmeroboticsinc"
    assert normalize_company_name("") == ""


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("https://www.businesswire.com/news/home/2024/acme", True),
        ("https://news.techcrunch.com/2024/some-story", True),
        ("https://acmerobotics.com/blog/acme-robotics-funding-round", True),
        ("https://acmerobotics.com/blog/careers", False),
        ("https://example.com/blog/series-a-funding", False),
        ("", False),
    ],
)
def test_url_strategy(url, expected):
    strategy = UrlRelevanceStrategy()

    assert strategy.requires_content is False
    assert strategy.is_relevant(url, "Acme Robotics") is expected


def test_content_strategy_scores_keywords_and_hosts():
    strategy = ContentRelevanceStrategy()

    assert strategy.score("https://www.businesswire.com/news/acme", "Acme raised capital") == 2 + 1 + 2
    assert strategy.score("https://blog.example.com/post", "nothing relevant") == 0
    assert strategy.score("https://www.reuters.com/markets/deal", "a funding round") == 2 + 1


def test_content_strategy_requires_company_name_and_threshold():
    strategy = ContentRelevanceStrategy()
    url = "https://blog.example.com/post"

    assert strategy.requires_content is True
    assert strategy.is_relevant(url, "Acme Robotics", "ACME ROBOTICS raises funding") is True
    assert strategy.is_relevant(url, "Acme Robotics", "Someone else raises funding") is False
    assert strategy.is_relevant(url, "Acme Robotics", "Acme Robotics hired a chef for the round") is False
    assert strategy.is_relevant(url, "Acme Robotics", "") is False
    assert strategy.is_relevant(url, "Acme Robotics", None) is False


def test_content_strategy_is_idempotent():
    strategy = ContentRelevanceStrategy()
    args = ("https://www.prnewswire.com/news-releases/acme", "Acme", "Acme closes funding round")

    assert strategy.is_relevant(*args) == strategy.is_relevant(*args) is True


def test_build_validation_strategy():
    config = EnrichmentConfig()

    assert isinstance(build_validation_strategy("url", config), UrlRelevanceStrategy)
    assert isinstance(build_validation_strategy(" Content ", config), ContentRelevanceStrategy)
    with pytest.raises(ValueError):
        build_validation_strategy("llm", config)
