import json

import httpx
import pytest

from console.client import MasterClient

WORKERS = [
    {"id": 1, "name": "alpha", "ip": "10.0.0.5", "port": 9000, "cidr": "10.100.0.1/32"},
    {"id": 2, "name": "beta", "ip": "10.0.0.6", "port": 9001, "cidr": "10.100.0.2/32"},
    {"id": 3, "name": "gamma", "ip": "10.0.0.7", "port": 9002, "cidr": "10.100.0.3/32"},
]


class FakeMaster:
    """httpx handler standing in for the master API; records every request."""

    def __init__(self, workers=None, create_status=201, create_body="created id=4\n",
                 status_code=200, status_text="interface: wg0\n"):
        self.workers = list(WORKERS if workers is None else workers)
        self.create_status = create_status
        self.create_body = create_body
        self.status_code = status_code
        self.status_text = status_text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if request.method == "GET" and path == "/api/workers":
            return httpx.Response(200, json=self.workers)
        if request.method == "GET" and path == "/api/workers/status":
            return httpx.Response(self.status_code, text=self.status_text)
        if request.method == "POST" and path == "/api/workers":
            return httpx.Response(self.create_status, text=self.create_body)
        return httpx.Response(404, text="not found")

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def created_payloads(self):
        return [json.loads(r.content) for r in self.calls("POST", "/api/workers")]


@pytest.fixture
def fake_master():
    return FakeMaster()


@pytest.fixture
async def master_client(fake_master):
    client = MasterClient("http://master.test", transport=httpx.MockTransport(fake_master))
    yield client
    await client.aclose()


@pytest.fixture
def workers():
    return [dict(w) for w in WORKERS]


@pytest.fixture
def make_master():
    """Build a FakeMaster with custom answers plus a client bound to it."""
    def _make(**answers):
        fake = FakeMaster(**answers)
        client = MasterClient("http://master.test", transport=httpx.MockTransport(fake))
        return fake, client

    return _make


@pytest.fixture
def transport_client():
    """Client whose transport is a plain handler function."""
    def _make(handler):
        return MasterClient("http://master.test", transport=httpx.MockTransport(handler))

    return _make
