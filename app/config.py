from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Fundraise Enrichment"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Providers
    serp_api_key: str | None = None
    google_api_key: str | None = None
    google_cx: str | None = None
    openai_api_key: str | None = None
    groq_api_key: str | None = None

    # Search
    search_provider: str = "serpapi"
    search_results_per_query: int = 6
    search_query_delay_seconds: float = 1.5
    search_retry_attempts: int = 3
    search_retry_backoff_seconds: float = 2.0
    validation_strategy: str = "content"

    # Fetching
    fetch_attempts: int = 3
    fetch_retry_delay_seconds: float = 1.0
    fetch_timeout_seconds: float = 15.0
    fetch_min_content_length: int = 200

    # Extraction
    extraction_provider_order: list[str] = ["groq", "openai"]
    fallback_provider_order: list[str] = ["openai", "groq"]
    investor_lookup_provider_order: list[str] = ["openai"]
    openai_extraction_model: str = "gpt-4o-mini"
    openai_fallback_model: str = "gpt-4o-mini"
    groq_extraction_model: str = "llama-3.1-8b-instant"
    extraction_temperature: float = 0.1
    extraction_max_content_chars: int = 8000
    fallback_confidence_threshold: float = 0.8

    # Batch runs
    batch_record_delay_seconds: float = 2.5

    # Security
    cors_origins: list[str] = []  # Empty by default for security

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Metrics
    metrics_backend: str = "stdout"
    metrics_namespace: str = "enrichment"
    metrics_disable: bool = False
    metrics_sample_rate: float = 1.0
    metrics_statsd_host: str = "127.0.0.1"
    metrics_statsd_port: int = 8125

    @property
    def configured_search_provider(self) -> str | None:
        """Return the search provider that has credentials, preferring the configured one."""
        provider = (self.search_provider or "").strip().lower()
        if provider == "google" and self.google_api_key and self.google_cx:
            return "google"
        if provider == "serpapi" and self.serp_api_key:
            return "serpapi"
        if self.serp_api_key:
            return "serpapi"
        if self.google_api_key and self.google_cx:
            return "google"
        return None

    model_config = ConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
