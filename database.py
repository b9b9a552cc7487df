"""
MongoDB access for CPM Inventory

One client per process, created on first use. Collection handles are cached by name.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database

from config import get_settings

logger = logging.getLogger(__name__)

COLLECTION_NAMES = ("hauling", "materials", "properties", "equipment")

_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_collections: Dict[str, Collection] = {}
_lock = threading.Lock()


def get_db() -> Database:
    global _client, _db
    if _db is None:
        # handlers run in a threadpool; only one of them may build the client
        with _lock:
            if _db is None:
                settings = get_settings()
                _client = MongoClient(settings.database_url)
                _db = _client[settings.database_name]
                logger.info("Connected to MongoDB database %s", settings.database_name)
    return _db


def get_collection(name: str) -> Collection:
    if name not in _collections:
        _collections[name] = get_db()[name]
    return _collections[name]


def get_collections() -> Dict[str, Collection]:
    """All listing collections, keyed by collection name. Used for slug checks."""
    return {name: get_collection(name) for name in COLLECTION_NAMES}


def ensure_indexes() -> None:
    # Unique within a collection only; MongoDB cannot index across collections.
    for name in COLLECTION_NAMES:
        get_collection(name).create_index(
            [("urlEnd", ASCENDING)],
            name="urlEnd_unique",
            unique=True,
            partialFilterExpression={"urlEnd": {"$gt": ""}},
        )


def close_db() -> None:
    global _client, _db
    with _lock:
        if _client is not None:
            _client.close()
        _client = None
        _db = None
        _collections.clear()


def _resolve(collection: Union[str, Collection]) -> Collection:
    return get_collection(collection) if isinstance(collection, str) else collection


def create_document(collection: Union[str, Collection], data: Union[BaseModel, Dict[str, Any]]) -> Optional[str]:
    """Insert one document and return its id, or None when the write was not acknowledged."""
    doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
    result = _resolve(collection).insert_one(doc)
    if not result.acknowledged:
        return None
    return str(result.inserted_id)


def get_documents(collection: Union[str, Collection], filter_dict: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    return list(_resolve(collection).find(filter_dict or {}))
