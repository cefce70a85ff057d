"""
Shared fixtures: an in-memory HTTP client and record builders.
"""
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from src.countydata.errors import SourceUnreachable
from src.countydata.models.data_source import DataSource, Jurisdiction, SourceMethod
from src.countydata.models.policy import BatchPolicy, RetryPolicy
from src.countydata.models.property import ProcessedProperty
from src.countydata.utils.http_client import HttpResponse


class FakeHttpClient:
    """
    Stand-in for AsyncHttpClient.

    routes maps a URL to an HttpResponse, an exception instance, a callable
    taking (url, params) or a list consumed one item per call. Unknown URLs
    raise SourceUnreachable with a 404.
    """

    def __init__(self, routes=None, head_routes=None):
        self.routes = dict(routes or {})
        self.head_routes = head_routes
        self.calls = []
        self.closed = False

    def _resolve(self, table, url, params):
        if url not in table:
            raise SourceUnreachable(url, "HTTP 404", 404)
        outcome = table[url]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if callable(outcome) and not isinstance(outcome, HttpResponse):
            outcome = outcome(url, params)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def head(self, url, timeout=None, headers=None):
        self.calls.append(("HEAD", url, headers, None))
        if self.head_routes is None:
            if url not in self.routes:
                raise SourceUnreachable(url, "HTTP 404", 404)
            return 200
        return self._resolve(self.head_routes, url, None)

    async def get(self, url, timeout=None, headers=None, params=None):
        self.calls.append(("GET", url, headers, params))
        return self._resolve(self.routes, url, params)

    async def get_json(self, url, timeout=None, headers=None, params=None):
        response = await self.get(url, timeout=timeout, headers=headers, params=params)
        return response.json()

    async def close(self):
        self.closed = True


def html_response(url, body, content_type="text/html; charset=utf-8"):
    return HttpResponse(url=url, status=200, text=body, content_type=content_type)


def json_response(url, body):
    import json
    return HttpResponse(url=url, status=200, text=json.dumps(body), content_type="application/json")


@pytest.fixture
def http_client_factory():
    return FakeHttpClient


@pytest.fixture
def html():
    return html_response


@pytest.fixture
def as_json():
    return json_response


@pytest.fixture
def no_delay_retry():
    return RetryPolicy(max_attempts=3, delay_seconds=0, timeout_seconds=1)


@pytest.fixture
def no_delay_batch():
    return BatchPolicy(batch_size=10, delay_seconds=0)


@pytest.fixture
def jurisdiction():
    return Jurisdiction(name="Orange County", state="Florida", state_code="12", county_code="095")


@pytest.fixture
def make_source():
    def _make(url="https://assessor.orange.gov", method=SourceMethod.SCRAPER, **overrides):
        fields = dict(
            id="source_12_095_1",
            name="Orange County Data Source",
            url=url,
            method=method,
            state="Florida",
            state_code="12",
            county="Orange",
            county_code="095",
        )
        fields.update(overrides)
        return DataSource(**fields)
    return _make


@pytest.fixture
def make_property():
    def _make(address="123 MAIN ST", owner_name="JOHN DOE", confidence_score=90, **overrides):
        fields = dict(
            address=address,
            owner_name=owner_name,
            assessed_value=250000.0,
            state="Florida",
            county="Orange",
            confidence_score=confidence_score,
            data_source="https://assessor.orange.gov",
        )
        fields.update(overrides)
        return ProcessedProperty(**fields)
    return _make
