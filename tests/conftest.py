"""Shared fixtures: an in-memory Redis server per test."""

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from prometheus_client import CollectorRegistry

from usage_analytics.modules.capture import TokenCaptureService
from usage_analytics.modules.timeseries import TimeSeriesService


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
async def redis_client(fake_server):
    client = FakeAsyncRedis(server=fake_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def registry():
    return CollectorRegistry()


@pytest.fixture
def capture_service(redis_client, registry):
    return TokenCaptureService(redis_client, registry=registry)


@pytest.fixture
def timeseries_service(redis_client, registry):
    return TimeSeriesService(redis_client, registry=registry)
