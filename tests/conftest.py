"""
Shared fixtures: a fake Mint API served through httpx.MockTransport.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from mint_harness.client import MintClient
from mint_harness.config import Settings


class FakeMint:
    """
    Canned Mint API responses keyed by (method, path).

    Unregistered routes answer 404. When several responses are queued for the
    same route they are served in order and the last one repeats.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[tuple[int, Any]]] = {}
        self.calls: list[httpx.Request] = []
        self.unreachable: set[str] = set()

    def add(self, method: str, path: str, status: int = 200, payload: Any = None) -> "FakeMint":
        self.routes.setdefault((method, path), []).append((status, payload))
        return self

    def disconnect(self, path: str = "*") -> "FakeMint":
        """Make requests to path (or every path) fail without a response."""
        self.unreachable.add(path)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if "*" in self.unreachable or request.url.path in self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        responses = self.routes.get((request.method, request.url.path))
        if not responses:
            return httpx.Response(404, json={"code": 404, "message": "Resource not found"})

        status, payload = responses.pop(0) if len(responses) > 1 else responses[0]
        if payload is None:
            return httpx.Response(status)
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    @property
    def paths(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.calls]

    def bodies(self, method: str, path: str) -> list[dict[str, Any]]:
        return [
            json.loads(r.content)
            for r in self.calls
            if r.method == method and r.url.path == path
        ]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_key="test-key",
        environment="sandbox",
        propagation_timeout=0.05,
        propagation_initial_delay=0,
        propagation_max_delay=0,
        static_dir="does-not-exist",
    )


@pytest.fixture
def fake_mint() -> FakeMint:
    return FakeMint()


@pytest.fixture
def mint_client(settings: Settings, fake_mint: FakeMint) -> MintClient:
    return MintClient(settings, transport=httpx.MockTransport(fake_mint.handler))
