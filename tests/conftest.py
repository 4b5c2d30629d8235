"""Pytest configuration and shared fixtures.

The services only use a handful of pymongo collection methods, so the tests
run against a small in-memory collection that implements exactly those. Every
operation holds one lock, which gives the same single-document atomicity that
MongoDB guarantees for `find_one_and_update` / `update_one`.
"""

from __future__ import annotations

import copy
from threading import Lock
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo import ReturnDocument, errors

from lesson_api.catalog import LessonCatalog
from lesson_api.ledger import InventoryLedger
from lesson_api.main import create_app
from lesson_api.orders import OrderIntake


def _matches(doc: dict, query: dict) -> bool:
    for key, expected in query.items():
        actual = doc.get(key)
        if isinstance(expected, dict) and "$gte" in expected:
            if actual is None or actual < expected["$gte"]:
                return False
        elif actual != expected:
            return False
    return True


def _apply(doc: dict, update: dict) -> None:
    for key, value in update.get("$set", {}).items():
        doc[key] = value
    for key, value in update.get("$inc", {}).items():
        doc[key] = doc.get(key, 0) + value


def _project(doc: dict, projection: dict | None) -> dict:
    if not projection:
        return copy.deepcopy(doc)
    keep = {k for k, v in projection.items() if v}
    return {k: copy.deepcopy(v) for k, v in doc.items() if k in keep or k == "_id"}


class FakeCursor(list):
    def sort(self, key, direction=1):
        return FakeCursor(sorted(self, key=lambda d: d.get(key), reverse=direction == -1))


class FakeCollection:
    """In-memory stand-in for the pymongo Collection methods the services use.

    Names in `fail_on` raise `AutoReconnect`, simulating a lost database.
    """

    def __init__(self) -> None:
        self.docs: list[dict] = []
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self._lock = Lock()

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail_on:
            raise errors.AutoReconnect(f"{op}: connection refused")

    def find(self, query=None):
        with self._lock:
            self._enter("find")
            return FakeCursor(copy.deepcopy(d) for d in self.docs if _matches(d, query or {}))

    def find_one(self, query=None, projection=None):
        with self._lock:
            self._enter("find_one")
            for doc in self.docs:
                if _matches(doc, query or {}):
                    return _project(doc, projection)
            return None

    def find_one_and_update(self, query, update, projection=None, return_document=ReturnDocument.BEFORE):
        with self._lock:
            self._enter("find_one_and_update")
            for doc in self.docs:
                if _matches(doc, query):
                    before = _project(doc, projection)
                    _apply(doc, update)
                    return before if return_document == ReturnDocument.BEFORE else _project(doc, projection)
            return None

    def update_one(self, query, update):
        with self._lock:
            self._enter("update_one")
            for doc in self.docs:
                if _matches(doc, query):
                    _apply(doc, update)
                    return SimpleNamespace(matched_count=1, modified_count=1)
            return SimpleNamespace(matched_count=0, modified_count=0)

    def insert_one(self, doc):
        with self._lock:
            self._enter("insert_one")
            doc.setdefault("_id", ObjectId())
            self.docs.append(copy.deepcopy(doc))
            return SimpleNamespace(inserted_id=doc["_id"])

    def insert_many(self, docs):
        ids = [self.insert_one(doc).inserted_id for doc in docs]
        return SimpleNamespace(inserted_ids=ids)

    def find_one_and_delete(self, query):
        with self._lock:
            self._enter("find_one_and_delete")
            for i, doc in enumerate(self.docs):
                if _matches(doc, query or {}):
                    return self.docs.pop(i)
            return None

    def delete_many(self, query):
        with self._lock:
            self._enter("delete_many")
            kept = [d for d in self.docs if not _matches(d, query)]
            deleted = len(self.docs) - len(kept)
            self.docs = kept
            return SimpleNamespace(deleted_count=deleted)


class FakeStore:
    """Same surface as `MongoStore`, backed by `FakeCollection`s."""

    def __init__(self) -> None:
        self.lessons = FakeCollection()
        self.orders = FakeCollection()
        self.recoveries = FakeCollection()
        self.connected = True
        self.closed = False

    def ping(self) -> bool:
        return self.connected

    def close(self) -> None:
        self.closed = True

    def add_lesson(self, spaces: int, subject: str = "Math", **extra) -> str:
        doc = {"subject": subject, "location": "London", "price": 100, "spaces": spaces, **extra}
        return str(self.lessons.insert_one(doc).inserted_id)

    def spaces(self, lesson_id: str) -> int:
        for doc in self.lessons.docs:
            if doc["_id"] == ObjectId(lesson_id):
                return doc["spaces"]
        raise KeyError(lesson_id)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def ledger(store) -> InventoryLedger:
    return InventoryLedger(store, release_attempts=2)


@pytest.fixture
def intake(store, ledger) -> OrderIntake:
    return OrderIntake(store, ledger)


@pytest.fixture
def catalog(store) -> LessonCatalog:
    return LessonCatalog(store)


@pytest.fixture
def client(store):
    with TestClient(create_app(store)) as c:
        yield c


def _order_payload(*items, name: str = "Ada Lovelace") -> dict:
    return {
        "customerName": name,
        "customerPhone": "07700 900123",
        "customerEmail": "ada@example.com",
        "items": [{"lessonId": lesson_id, "quantity": qty} for lesson_id, qty in items],
    }


@pytest.fixture
def order_payload():
    """Build a POST /orders body from (lesson_id, quantity) pairs."""
    return _order_payload
