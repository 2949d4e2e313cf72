"""
Shared fixtures for callsync tests.

Every store-level and API-level test runs once per backend:
- sql:   SQLModel over in-memory SQLite
- mongo: pymongo API served by mongomock
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from callsync.main import create_app
from callsync.mongo_store import MongoRecordStore
from callsync.settings import Settings
from callsync.sql_store import SQLRecordStore


def make_sql_store():
    return SQLRecordStore.from_url("sqlite://")


def make_mongo_store():
    client = mongomock.MongoClient()
    client.drop_database("callsync_test")
    return MongoRecordStore(client["callsync_test"], client)


@pytest.fixture(params=["sql", "mongo"])
def store(request):
    """A fresh, initialised record store for each backend."""
    s = make_sql_store() if request.param == "sql" else make_mongo_store()
    s.init()
    yield s
    s.close()


@pytest.fixture
def settings():
    return Settings(default_limit=100, max_limit=1000, cors_origins=["*"])


@pytest.fixture
def client(store, settings):
    """Test client bound to the parametrized store."""
    app = create_app(settings=settings, store=store)
    with TestClient(app) as c:
        yield c
