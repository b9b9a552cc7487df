"""
CRUD endpoints shared by every listing kind

build_router() returns the GET/POST/PUT/DELETE/OPTIONS handlers for one kind, mounted at /api/<kind>.
"""
import logging
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, Response
from pydantic import ValidationError
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from config import get_settings
from cors import cors_headers
from database import create_document, get_collections, get_documents
from helpers import generate_unique_url_end, slugify
from schemas import KINDS

logger = logging.getLogger(__name__)

INSERT_ATTEMPTS = 3


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    if isinstance(doc.get("_id"), ObjectId):
        doc["_id"] = str(doc["_id"])
    return doc


def parse_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail="Invalid _id")
    return ObjectId(value)


def field_defaults(model: type) -> Dict[str, Any]:
    return {name: info.get_default(call_default_factory=True) for name, info in model.model_fields.items()}


def build_update(model: type, update_data: Dict[str, Any], url_end: Optional[str]) -> Dict[str, Any]:
    """Full document for PUT: submitted values, with the model default for anything omitted or falsy."""
    fields = {name: update_data.get(name) or default for name, default in field_defaults(model).items()}
    fields["urlEnd"] = url_end or ""
    try:
        return model.model_validate(fields).model_dump()
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _fail(action: str, label: str, e: Exception) -> HTTPException:
    logger.exception("Error trying to %s %s", action, label)
    return HTTPException(status_code=500, detail=f"Failed to {action} {label}: {e}" if str(e) else "Unknown error occurred")


def build_router(kind_name: str) -> APIRouter:
    kind = KINDS[kind_name]
    create_schema = kind.create_schema
    router = APIRouter(prefix=f"/api/{kind_name}", tags=[kind_name])

    @router.options("", status_code=204)
    def preflight(request: Request):
        return Response(status_code=204, headers=cors_headers(request.headers.get("origin"), get_settings().allowed_origins))

    @router.get("")
    def read_entries(
        entry_id: Optional[str] = Query(None, alias="_id"),
        url_end: Optional[str] = Query(None, alias="urlEnd"),
        collections: Dict[str, Collection] = Depends(get_collections),
    ):
        try:
            collection = collections[kind.collection]
            if entry_id:
                doc = collection.find_one({"_id": parse_object_id(entry_id)})
            elif url_end:
                doc = collection.find_one({"urlEnd": url_end})
            else:
                return [serialize_doc(d) for d in get_documents(collection)]
            if doc is None:
                raise HTTPException(status_code=404, detail=f"{kind.title} not found")
            return serialize_doc(doc)
        except HTTPException:
            raise
        except Exception as e:
            raise _fail("fetch", kind.label, e)

    @router.post("", status_code=201)
    def create_entry(payload: create_schema, collections: Dict[str, Collection] = Depends(get_collections)):
        try:
            collection = collections[kind.collection]
            desired = payload.urlEnd or slugify(payload.name) or kind.collection
            document = payload.model_dump()
            for attempt in range(1, INSERT_ATTEMPTS + 1):
                document["urlEnd"] = generate_unique_url_end(collections.values(), desired)
                try:
                    new_id = create_document(collection, document)
                    break
                except DuplicateKeyError:
                    # another request claimed the slug between the check and the insert
                    logger.warning("urlEnd %s taken concurrently (attempt %d)", document["urlEnd"], attempt)
                    if attempt == INSERT_ATTEMPTS:
                        raise
            if new_id is None:
                raise HTTPException(status_code=500, detail=f"Failed to add {kind.label}")
            logger.info("Created %s %s with urlEnd %s", kind.label, new_id, document["urlEnd"])
            return {
                "message": f"{kind.title} added successfully",
                "_id": new_id,
                "urlEnd": document["urlEnd"],
            }
        except HTTPException:
            raise
        except Exception as e:
            raise _fail("create", kind.label, e)

    @router.put("")
    def update_entry(
        response: Response,
        payload: Dict[str, Any] = Body(...),
        collections: Dict[str, Collection] = Depends(get_collections),
    ):
        try:
            update_data = dict(payload)
            raw_id = update_data.pop("_id", None)
            if not raw_id:
                raise HTTPException(status_code=400, detail="_id is required")
            object_id = parse_object_id(raw_id)
            collection = collections[kind.collection]

            existing = collection.find_one({"_id": object_id})
            url_end = update_data.get("urlEnd")
            if url_end and (existing is None or existing.get("urlEnd") != url_end):
                url_end = generate_unique_url_end(collections.values(), url_end)

            document = build_update(kind.model, update_data, url_end)
            result = collection.update_one({"_id": object_id}, {"$set": document}, upsert=True)

            body = {"_id": str(object_id), "urlEnd": document["urlEnd"]}
            if result.matched_count == 0 and result.upserted_id is not None:
                response.status_code = 201
                return {"message": f"New {kind.label} added", **body}
            if result.modified_count > 0:
                return {"message": f"{kind.title} updated successfully", **body}
            return {"message": "No changes made", **body}
        except HTTPException:
            raise
        except Exception as e:
            raise _fail("update", kind.label, e)

    @router.delete("")
    def delete_entry(
        entry_id: Optional[str] = Query(None, alias="_id"),
        collections: Dict[str, Collection] = Depends(get_collections),
    ):
        if not entry_id:
            raise HTTPException(status_code=400, detail="_id is required")
        try:
            result = collections[kind.collection].delete_one({"_id": parse_object_id(entry_id)})
            if result.deleted_count == 1:
                logger.info("Deleted %s %s", kind.label, entry_id)
                return {"message": f"{kind.title} deleted successfully"}
            raise HTTPException(status_code=404, detail=f"{kind.title} not found")
        except HTTPException:
            raise
        except Exception as e:
            raise _fail("delete", kind.label, e)

    return router
