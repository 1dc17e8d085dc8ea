import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from kitchen_orders.core.db import MODELS_MODULES
from kitchen_orders.main import app
from kitchen_orders.services.notification import TransportRegistry
from kitchen_orders.testing.fakes import RecordingTransport


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def transports():
    """Swaps the app's transport registry for one that records mail instead of sending it."""
    previous = app.state.transports
    registry = TransportRegistry(factory=lambda settings: RecordingTransport())
    app.state.transports = registry
    yield registry
    app.state.transports = previous


@pytest_asyncio.fixture
async def client(db, transports):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test", follow_redirects=True) as c:
        yield c
