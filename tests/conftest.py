"""Shared fixtures: the app wired to in-memory collections instead of MongoDB."""
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import database
from main import app


def _matches(doc, flt):
    return all(doc.get(key) == value for key, value in flt.items())


class FakeCollection:
    """The subset of pymongo's Collection API the handlers use."""

    def __init__(self, name, docs=None):
        self.name = name
        self.docs = [dict(d) for d in docs or []]
        self.lookups = []

    def find_one(self, flt=None, projection=None):
        self.lookups.append(dict(flt or {}))
        for doc in self.docs:
            if _matches(doc, flt or {}):
                return dict(doc)
        return None

    def find(self, flt=None):
        return [dict(doc) for doc in self.docs if _matches(doc, flt or {})]

    def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self.docs.append(dict(doc))
        return SimpleNamespace(acknowledged=True, inserted_id=doc["_id"])

    def update_one(self, flt, update, upsert=False):
        changes = update.get("$set", {})
        for doc in self.docs:
            if _matches(doc, flt):
                modified = any(doc.get(k) != v for k, v in changes.items())
                doc.update(changes)
                return SimpleNamespace(matched_count=1, modified_count=int(modified), upserted_id=None)
        if upsert:
            new_doc = {**flt, **changes}
            self.docs.append(new_doc)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=new_doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    def delete_one(self, flt):
        for i, doc in enumerate(self.docs):
            if _matches(doc, flt):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    name = "cpm_inventory_test"

    def __init__(self, collections):
        self.collections = collections

    def list_collection_names(self):
        return sorted(self.collections)


@pytest.fixture
def collections():
    return {name: FakeCollection(name) for name in database.COLLECTION_NAMES}


@pytest.fixture
def client(collections):
    app.dependency_overrides[database.get_collections] = lambda: collections
    app.dependency_overrides[database.get_db] = lambda: FakeDatabase(collections)
    yield TestClient(app)
    app.dependency_overrides.clear()
