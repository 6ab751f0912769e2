"""
Pytest configuration for zoteroclient tests.
"""

import json

import httpx
import pytest

from zoteroclient import ZoteroClient
from zoteroclient._httpx import ZoteroTransport


def pytest_addoption(parser):
    """Add command line option to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against api.zotero.org",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: test talks to the live Zotero API")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed."""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replays queued responses.

    Responses are returned in the order they were queued; once the queue is
    empty every request gets ``200 {}``.
    """

    def __init__(self):
        self.requests = []
        self._responses = []

    def queue(self, status_code=200, json_data=None, content=None, headers=None):
        if json_data is not None:
            content = json.dumps(json_data).encode("utf-8")
            headers = {"Content-Type": "application/json", **(headers or {})}
        self._responses.append((status_code, content or b"", headers or {}))
        return self

    def queue_error(self, error):
        self._responses.append(error)
        return self

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._responses:
            return httpx.Response(200, content=b"{}")
        queued = self._responses.pop(0)
        if isinstance(queued, Exception):
            raise queued
        status_code, content, headers = queued
        return httpx.Response(status_code, content=content, headers=headers)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def api():
    return RecordingHandler()


@pytest.fixture
def transport(api):
    httpx_client = httpx.Client(transport=httpx.MockTransport(api))
    with ZoteroTransport(client=httpx_client) as zotero_transport:
        yield zotero_transport
    httpx_client.close()


@pytest.fixture
def client(transport):
    with ZoteroClient("test-api-key", transport=transport) as zotero_client:
        yield zotero_client


@pytest.fixture
def library(client):
    return client.user_library(475425)
