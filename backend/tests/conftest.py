"""
Test configuration: env defaults before app import, in-memory fake of the motor collection.
"""

import copy
import os

import pytest

os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from fastapi.testclient import TestClient  # noqa: E402

from app.api.deps import get_current_user_id  # noqa: E402
from app.db import mongo  # noqa: E402
from app.main import app  # noqa: E402

TEST_USER_ID = "test_user_123"


class _Result:
    def __init__(self, **counts):
        self.__dict__.update(counts)


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs = sorted(self._docs, key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def __aiter__(self):
        self._iter = iter(self._docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration


class FakeCollection:
    """
    Motor AsyncIOMotorCollection 중 crud 가 쓰는 부분만 흉내냅니다 (단순 동등 비교 필터).
    """

    def __init__(self):
        self.docs = []

    @staticmethod
    def _matches(doc, query):
        return all(doc.get(k) == v for k, v in query.items())

    async def insert_one(self, doc):
        self.docs.append(copy.deepcopy(doc))
        return _Result(inserted_id=doc["_id"])

    async def find_one(self, query):
        for doc in self.docs:
            if self._matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query):
        return FakeCursor([copy.deepcopy(d) for d in self.docs if self._matches(d, query)])

    async def replace_one(self, query, replacement):
        for i, doc in enumerate(self.docs):
            if self._matches(doc, query):
                self.docs[i] = copy.deepcopy(replacement)
                return _Result(matched_count=1, modified_count=1)
        return _Result(matched_count=0, modified_count=0)

    async def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if self._matches(doc, query):
                del self.docs[i]
                return _Result(deleted_count=1)
        return _Result(deleted_count=0)


class FakeDatabase(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]

    async def command(self, name):
        return {"ok": 1}


@pytest.fixture
def fake_db(monkeypatch):
    database = FakeDatabase()
    monkeypatch.setattr(mongo, "db", database)
    return database


@pytest.fixture
def client(fake_db):
    app.dependency_overrides[get_current_user_id] = lambda: TEST_USER_ID
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(fake_db):
    return TestClient(app)
