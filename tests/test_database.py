"""Tests for the database module: client caching, indexes and document helpers."""
import threading
from unittest.mock import MagicMock, call, patch

import pytest
from fastapi.testclient import TestClient
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

import database
import main
from tests.conftest import FakeCollection


@pytest.fixture
def fresh_db(monkeypatch):
    """Start every test without a cached client."""
    monkeypatch.setattr(database, "_client", None)
    monkeypatch.setattr(database, "_db", None)
    monkeypatch.setattr(database, "_collections", {})
    with patch.object(database, "MongoClient") as mock_client_cls:
        yield mock_client_cls


class TestClientCaching:
    def test_client_built_once(self, fresh_db):
        first = database.get_db()
        second = database.get_db()

        assert first is second
        fresh_db.assert_called_once_with(database.get_settings().database_url)

    def test_concurrent_first_use_builds_one_client(self, fresh_db):
        threads = [threading.Thread(target=database.get_db) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert fresh_db.call_count == 1

    def test_collection_handles_cached(self, fresh_db):
        assert database.get_collection("hauling") is database.get_collection("hauling")
        assert set(database.get_collections()) == {"hauling", "materials", "properties", "equipment"}
        fresh_db.return_value.__getitem__.return_value.__getitem__.assert_any_call("hauling")

    def test_close_clears_caches(self, fresh_db):
        database.get_collection("materials")

        database.close_db()

        fresh_db.return_value.close.assert_called_once()
        assert database._client is None
        assert database._db is None
        assert database._collections == {}
        database.get_db()
        assert fresh_db.call_count == 2


class TestEnsureIndexes:
    def test_partial_unique_index_per_collection(self):
        handles = {name: MagicMock() for name in database.COLLECTION_NAMES}

        with patch.object(database, "get_collection", side_effect=handles.__getitem__):
            database.ensure_indexes()

        for handle in handles.values():
            handle.create_index.assert_called_once_with(
                [("urlEnd", ASCENDING)],
                name="urlEnd_unique",
                unique=True,
                partialFilterExpression={"urlEnd": {"$gt": ""}},
            )


class TestDocumentHelpers:
    def test_create_document_returns_id(self):
        collection = FakeCollection("hauling")
        data = {"name": "Dump Run", "urlEnd": "dump-run"}

        new_id = database.create_document(collection, data)

        assert new_id == str(collection.docs[0]["_id"])
        assert "_id" not in data

    def test_create_document_unacknowledged(self):
        collection = MagicMock()
        collection.insert_one.return_value.acknowledged = False
        assert database.create_document(collection, {"name": "x"}) is None

    def test_helpers_accept_collection_name(self):
        collection = FakeCollection("materials", [{"name": "Sand", "isActive": True}, {"name": "Clay"}])
        with patch.object(database, "get_collection", return_value=collection) as mock_get:
            docs = database.get_documents("materials", {"isActive": True})

        mock_get.assert_called_once_with("materials")
        assert [d["name"] for d in docs] == ["Sand"]


class TestLifespan:
    def test_index_failure_is_logged_not_fatal(self, caplog):
        with patch.object(main, "ensure_indexes", side_effect=ServerSelectionTimeoutError("no servers")), \
                patch.object(main, "close_db") as mock_close:
            with TestClient(main.app) as client:
                assert client.get("/").status_code == 200

        mock_close.assert_called_once()
        assert "Could not create urlEnd indexes" in caplog.text

    def test_indexes_created_at_startup(self):
        with patch.object(main, "ensure_indexes") as mock_ensure, patch.object(main, "close_db"):
            with TestClient(main.app):
                pass

        assert mock_ensure.call_args_list == [call()]


class TestPutConflict:
    def test_duplicate_key_on_update_is_500(self, client, collections):
        oid = collections["hauling"].insert_one({"name": "Dump Run", "urlEnd": "dump-run"}).inserted_id

        with patch.object(collections["hauling"], "update_one", side_effect=DuplicateKeyError("E11000 duplicate key")):
            response = client.put("/api/hauling", json={"_id": str(oid), "name": "Dump Run", "urlEnd": "dump-run"})

        assert response.status_code == 500
        assert response.json()["message"].startswith("Failed to update hauling entry: E11000")
