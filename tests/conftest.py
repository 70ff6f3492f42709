import os

# Must be set before lexdraft.database builds its module-level engine
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["OPENAI_API_KEY"] = ""

import fakeredis
import pytest

from lexdraft.config import Settings
from lexdraft.database import create_engine, create_session_factory, init_db
from lexdraft.queue import DurableQueueStore, QueueRegistry

QUEUE_NAME = "letter-generation"


@pytest.fixture
def test_settings():
    """Settings tuned for fast tests."""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        REDIS_KEY_PREFIX="test",
        REDIS_RECONNECT_INTERVAL=0.01,
        QUEUE_BACKOFF_DELAY_MS=10,
        WORKER_POLL_INTERVAL=0.01,
        WORKER_SHUTDOWN_TIMEOUT=2.0,
        GENERATION_TIMEOUT_SECONDS=5.0,
        GENERATION_RETRY_BASE_DELAY_MS=1,
        GENERATION_RETRY_MAX_DELAY_MS=4,
        OPENAI_API_KEY=None,
    )


@pytest.fixture
def redis_server():
    """Fake Redis server; set ``connected = False`` to simulate an outage."""
    return fakeredis.FakeServer()


@pytest.fixture
async def redis_client(redis_server):
    """In-memory Redis with its own server per test."""
    client = fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def store(redis_client):
    return DurableQueueStore(
        QUEUE_NAME,
        redis_client,
        prefix="test",
        default_attempts=3,
        backoff_ms=10,
        keep_completed=100,
        keep_failed=500,
        lock_duration_ms=60000,
    )


@pytest.fixture
def registry(test_settings, redis_client):
    return QueueRegistry(test_settings, client=redis_client)


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions get their own connections."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/lexdraft.db", echo=False)
    await init_db(engine)
    yield create_session_factory(engine)
    await engine.dispose()


