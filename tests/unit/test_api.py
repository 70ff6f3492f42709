"""Tests for the FastAPI app and its lifespan."""

import time

import fakeredis
import pytest
from fastapi.testclient import TestClient

from lexdraft import __version__
from lexdraft.api.main import create_app
from lexdraft.database import create_engine, create_session_factory
from lexdraft.runtime import build_runtime
from tests.fakes import StubAIClient


@pytest.fixture
def client(test_settings):
    def runtime_factory():
        # Created inside the lifespan so the client binds to the app's loop
        return build_runtime(
            test_settings,
            redis_client=fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True),
            session_factory=create_session_factory(create_engine("sqlite+aiosqlite://", echo=False)),
            ai_client=StubAIClient(),
            run_worker=True,
        )

    app = create_app(runtime_factory, init_database=False)
    with TestClient(app) as test_client:
        yield test_client


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": f"LexDraft API v{__version__}"}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_queue_health(client):
    deadline = time.monotonic() + 3
    report = client.get("/health/queues").json()
    while not report["ready"] and time.monotonic() < deadline:
        time.sleep(0.02)
        report = client.get("/health/queues").json()

    assert report["ready"] is True
    assert report["healthy"] is True
    assert report["worker_running"] is True
    queue = report["queues"]["letter-generation"]
    assert queue["connected"] is True
    assert queue["stats"]["waiting"] == 0


def test_runtime_stops_with_app(test_settings):
    runtimes = []

    def runtime_factory():
        runtime = build_runtime(
            test_settings,
            redis_client=fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True),
            session_factory=create_session_factory(create_engine("sqlite+aiosqlite://", echo=False)),
            ai_client=StubAIClient(),
            run_worker=True,
        )
        runtimes.append(runtime)
        return runtime

    with TestClient(create_app(runtime_factory, init_database=False)):
        pass

    (runtime,) = runtimes
    assert not runtime.scheduler.is_running
    assert not runtime.registry.is_ready
