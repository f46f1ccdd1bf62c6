"""
Shared fixtures: a ServiceClient wired to an in-process httpx.MockTransport.
"""

import httpx
import pytest

from swift_obst import ServiceClient, ServiceConfig

TOKEN = "cbc36478b0bd8e67e89469c7749d4127"
STORAGE_ENDPOINT = "http://127.0.0.1:33200/v1/"
IDENTITY_ENDPOINT = "http://127.0.0.1:35357/v3/"


class Recorder:
    """Routes requests to a handler and remembers every request seen."""

    def __init__(self, handler):
        self.handler = handler
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        assert request.headers.get("X-Auth-Token") == TOKEN
        return self.handler(request)


@pytest.fixture
def make_client():
    clients = []

    def _make(handler, endpoint=STORAGE_ENDPOINT):
        recorder = Recorder(handler)
        client = ServiceClient(
            ServiceConfig(endpoint=endpoint, token=TOKEN),
            transport=httpx.MockTransport(recorder),
        )
        client.recorder = recorder
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.close()
