"""Pytest configuration and shared fixtures.

Usage Guide:
- For wire-level tests: use the `trpc_server` + `client` fixtures
- For queue timing tests: use `fake_clock` (deterministic, no real sleeping)
- For envelope/cursor constants: import from tests.fixtures
"""

import asyncio

import httpx
import pytest

from tests.fixtures import FakeTrpcServer
from warera_client.client import WareraClient
from warera_client.config import Settings

# -----------------------------------------------------------------------------
# Clock
# -----------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock whose sleep advances time instantly.

    Pass ``clock=fake_clock`` and ``sleep=fake_clock.sleep`` to a DispatchQueue.
    """

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


# -----------------------------------------------------------------------------
# Client Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from .env, with a 1ms dispatch spacing."""
    return Settings(
        _env_file=None,
        api_url="https://api.test/trpc",
        rate_limit=60_000,
        log_operations=False,
    )


@pytest.fixture
def trpc_server() -> FakeTrpcServer:
    return FakeTrpcServer()


@pytest.fixture
async def client(test_settings, trpc_server):
    """WareraClient wired to the fake tRPC server."""
    client = WareraClient(test_settings, transport=httpx.MockTransport(trpc_server))
    yield client
    await client.aclose()
