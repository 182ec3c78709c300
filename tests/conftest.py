import asyncio

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from lms.core.auth import get_current_user
from lms.core.database import create_indexes, get_db
from lms.main import app
from tests.factories import new_database, seed_catalog, student


@pytest_asyncio.fixture
async def db():
    database = new_database()
    await create_indexes(database)
    await seed_catalog(database)
    return database


class Api:
    """TestClient bound to an in-memory database and a switchable caller"""

    def __init__(self, database):
        self.db = database
        self.user = student()
        self.client = TestClient(app)

    def as_user(self, user):
        self.user = user
        return self

    def run(self, coro):
        return asyncio.run(coro)


@pytest.fixture
def api():
    database = new_database()
    state = Api(database)
    state.run(create_indexes(database))
    state.run(seed_catalog(database))

    app.dependency_overrides[get_db] = lambda: database
    app.dependency_overrides[get_current_user] = lambda: state.user
    yield state
    app.dependency_overrides.clear()
