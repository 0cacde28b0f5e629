import asyncio

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.models.fundraise import FundraiseRecord


class _SyncASGIClient:
    """Minimal synchronous wrapper around httpx.AsyncClient for ASGI apps."""

    def __init__(self, app):
        transport = httpx.ASGITransport(app=app)
        self._client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._client.request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)

    def close(self) -> None:
        asyncio.run(self._client.aclose())


@pytest.fixture
def client():
    """Create test client compatible with older/newer httpx releases."""
    try:
        test_client = TestClient(app)
        yield test_client
    except TypeError:
        fallback_client = _SyncASGIClient(app)
        try:
            yield fallback_client
        finally:
            fallback_client.close()


@pytest.fixture
def sleeps() -> list[float]:
    """Delays recorded by an injected sleep callable."""
    return []


@pytest.fixture
def record_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def make_record():
    """Factory for pending fundraise records."""

    def _make(**overrides) -> FundraiseRecord:
        payload = {
            "id": "rec-1",
            "company_name": "Acme Robotics",
            "date_raised": "2024-03-12",
            "amount_raised": "Not specified",
            "investors": "Not specified",
        }
        payload.update(overrides)
        return FundraiseRecord(**payload)

    return _make
