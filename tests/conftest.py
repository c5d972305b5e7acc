import asyncio

import mongomock
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from config import Settings
from database import MongoDatabase
from main import create_app
from models.labour import LabourCreate
from services.attendance_service import AttendanceLedger
from services.labour_service import LabourerDirectory


class InMemoryCursor:
    """Motor-style cursor over a mongomock cursor."""

    def __init__(self, cursor):
        self._cursor = cursor

    def sort(self, *args, **kwargs):
        self._cursor = self._cursor.sort(*args, **kwargs)
        return self

    def skip(self, count):
        self._cursor = self._cursor.skip(count)
        return self

    def limit(self, count):
        self._cursor = self._cursor.limit(count)
        return self

    async def to_list(self, length=None):
        await asyncio.sleep(0)
        docs = list(self._cursor)
        return docs if length is None else docs[:length]


class InMemoryCollection:
    """
    Motor-style collection over a mongomock collection. Every call yields to
    the event loop first so concurrent coroutines interleave the way they do
    against a real server.
    """

    def __init__(self, collection):
        self._collection = collection

    def find(self, *args, **kwargs):
        return InMemoryCursor(self._collection.find(*args, **kwargs))

    def aggregate(self, pipeline, **kwargs):
        return InMemoryCursor(self._collection.aggregate(pipeline, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, **kwargs):
            await asyncio.sleep(0)
            return method(*args, **kwargs)

        return call


class InMemoryDatabase:
    def __init__(self, db):
        self._db = db

    def __getitem__(self, name):
        return InMemoryCollection(self._db[name])


class InMemoryMongoClient:
    def __init__(self):
        self._client = mongomock.MongoClient()

    def __getitem__(self, name):
        return InMemoryDatabase(self._client[name])

    def close(self):
        self._client.close()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        mongodb_db="kissanpartner_test",
        log_level="DEBUG",
        static_dir=str(tmp_path / "dist"),
        uploads_dir=str(tmp_path / "uploads"),
    )


@pytest_asyncio.fixture
async def mongo():
    handle = MongoDatabase("mongodb://localhost:27017", "kissanpartner_test", client=InMemoryMongoClient())
    await handle.connect()
    yield handle
    handle.close()


@pytest.fixture
def directory(mongo):
    return LabourerDirectory(mongo)


@pytest.fixture
def ledger(mongo, directory):
    return AttendanceLedger(mongo, directory, max_attempts=5)


@pytest_asyncio.fixture
async def labourer(directory):
    return await directory.create(LabourCreate(
        name="Ramesh Kumar",
        villageName="Village A",
        contactNumber="9876543210",
        workTypes=["Plowing", "Harvesting"],
    ))


@pytest.fixture
def client(settings):
    app = create_app(settings, mongo_client=InMemoryMongoClient())
    with TestClient(app) as test_client:
        yield test_client
