"""
MongoDB connection bootstrap and small document helpers.

The connection is opened once at startup by ``connect_db``. Request handlers
receive the database through the ``get_db`` dependency so tests can swap in
another handle.
"""
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
db: Optional[Database] = None


def connect_db() -> Database:
    """Connect to MongoDB, or log the failure and stop the process."""
    global _client, db
    try:
        if not config.DATABASE_URL:
            raise ValueError("DATABASE_URL is not set")
        _client = MongoClient(config.DATABASE_URL, serverSelectionTimeoutMS=5000)
        _client.admin.command("ping")
        db = _client[config.DATABASE_NAME]
    except (PyMongoError, ValueError) as e:
        logger.error("MongoDB connection error: %s", e)
        sys.exit(1)
    logger.info("Successfully connected to MongoDB (%s)", config.DATABASE_NAME)
    return db


def close_db() -> None:
    global _client, db
    if _client is not None:
        _client.close()
    _client = None
    db = None


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def parse_object_id(value: str, label: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=f"Invalid object id: {label}")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc["_id"] = str(doc["_id"])
    return doc


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created/updated times and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return [serialize_doc(doc) for doc in cursor]
