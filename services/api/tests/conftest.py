import os
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("AI_MODE", "mock")

from wokai.main import app
from wokai.realtime.agent_channel import AgentChannel
from wokai.schemas import RecipeStructure
from wokai.services.cook_session import CookSession

import fakeredis
import fakeredis.aioredis
from wokai.infra import redis_client


@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)

    # Force the client into the infra module
    redis_client._redis_async = async_redis

    yield

    # Cleanup
    redis_client._redis_async = None


@pytest.fixture
def client():
    """Test client; the lifespan gives each test a fresh session manager."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def pasta_recipe():
    return RecipeStructure(
        title="Weeknight Pasta",
        ingredients=["200g spaghetti", "2 cloves garlic", "Olive oil"],
        steps=[
            "Bring a large pot of salted water to a boil.",
            "Cook the spaghetti for 9 minutes.",
            "Toss with garlic and olive oil.",
        ],
        timing={"prep": 5, "cook": 15, "total": 20},
        techniques=["boil", "saute"],
    )


@pytest.fixture
def cook_session(pasta_recipe):
    """A session driven by a manual clock (no background tasks)."""
    session = CookSession(pasta_recipe, auto_tick=False)
    yield session
    session.close()


class RecordingChannel(AgentChannel):
    """Agent channel double that keeps every frame it is sent."""

    def __init__(self, is_open=True):
        self.frames = []
        self._open = is_open

    @property
    def is_open(self):
        return self._open

    def close(self):
        self._open = False

    def send_json(self, frame):
        self.frames.append(frame)

    @property
    def updates(self):
        return [f["text"] for f in self.frames if f["type"] == "contextual_update"]


@pytest.fixture
def channel():
    return RecordingChannel()
