"""
Pytest configuration and shared fixtures.
"""

import copy
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from api.database import AuthorStore, BookStore
from api.deps import get_author_store, get_book_store
from api.main import app


class FakeCursor:
    """Stand-in for a Motor cursor; only ``to_list`` is needed."""

    def __init__(self, documents):
        self.documents = documents

    async def to_list(self, length=None):
        return self.documents if length is None else self.documents[:length]


class FakeCollection:
    """
    In-memory collection supporting the calls the stores make.

    Filters understood: ``{}``, ``{"_id": oid}`` and ``{"_id": {"$in": [...]}}``.
    Set ``fail = True`` to make every call raise a driver error.
    """

    def __init__(self):
        self.documents = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise ServerSelectionTimeoutError("No servers found")

    def _matches(self, document, query):
        if "_id" not in query:
            return True
        condition = query["_id"]
        if isinstance(condition, dict):
            return document["_id"] in condition["$in"]
        return document["_id"] == condition

    async def insert_one(self, document):
        self._check()
        document.setdefault("_id", ObjectId())
        self.documents[document["_id"]] = copy.deepcopy(document)
        return SimpleNamespace(inserted_id=document["_id"])

    def find(self, query=None):
        self._check()
        query = query or {}
        return FakeCursor([
            copy.deepcopy(doc) for doc in self.documents.values() if self._matches(doc, query)
        ])

    async def find_one(self, query):
        self._check()
        for document in self.documents.values():
            if self._matches(document, query):
                return copy.deepcopy(document)
        return None

    async def find_one_and_update(self, query, update, return_document=None):
        self._check()
        for document in self.documents.values():
            if self._matches(document, query):
                document.update(copy.deepcopy(update["$set"]))
                return copy.deepcopy(document)
        return None

    async def delete_one(self, query):
        self._check()
        for key, document in list(self.documents.items()):
            if self._matches(document, query):
                del self.documents[key]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


@pytest.fixture
def authors_collection():
    """Empty in-memory authors collection."""
    return FakeCollection()


@pytest.fixture
def books_collection():
    """Empty in-memory books collection."""
    return FakeCollection()


@pytest.fixture
def author_store(authors_collection):
    return AuthorStore(authors_collection)


@pytest.fixture
def book_store(books_collection, author_store):
    return BookStore(books_collection, author_store)


@pytest.fixture
def mock_book_store():
    """Mock book store for router tests."""
    return AsyncMock(spec=BookStore)


@pytest.fixture
def mock_author_store():
    """Mock author store for router tests."""
    return AsyncMock(spec=AuthorStore)


@pytest.fixture
def client(mock_book_store, mock_author_store):
    """Test client with mocked stores."""
    app.dependency_overrides[get_book_store] = lambda: mock_book_store
    app.dependency_overrides[get_author_store] = lambda: mock_author_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def store_client(book_store, author_store):
    """Test client backed by real stores over in-memory collections."""
    app.dependency_overrides[get_book_store] = lambda: book_store
    app.dependency_overrides[get_author_store] = lambda: author_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_book_data():
    """Request body for a typical book."""
    return {
        "title": "Designing Data Systems",
        "year": 2017,
        "description": "A tour of storage engines.",
        "quantity": 3,
    }


@pytest.fixture
def sample_author_data():
    """Request body for a typical author."""
    return {"firstName": "Jane", "lastName": "Doe", "bio": "Writes about databases."}
