"""
Database Helper Functions

MongoDB helpers shared by the route handlers. `db` stays None when the
connection variables are missing so the app can still boot and report it.
"""
import os
import logging
from datetime import datetime, timezone
from typing import Union, Optional

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]
    logger.info("Connected to MongoDB database %s", database_name)


def get_db():
    """Return the active database handle (tests swap `database.db`)."""
    return db


def create_document(collection_name: str, data: Union[BaseModel, dict]):
    """Insert a single document with timestamps, return its id as a string"""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: dict = None, limit: int = None):
    """Get documents from collection"""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)

    return list(cursor)


def id_values(doc_id: str) -> list:
    """Both stored forms of an id: the ObjectId (when valid) and the string."""
    if ObjectId.is_valid(doc_id):
        return [ObjectId(doc_id), doc_id]
    return [doc_id]


def id_filter(doc_id: str) -> dict:
    """Match either an ObjectId or a client-generated string id."""
    return {"_id": {"$in": id_values(doc_id)}}


def get_document(collection_name: str, doc_id: str) -> Optional[dict]:
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db[collection_name].find_one(id_filter(doc_id))


def update_document(collection_name: str, doc_id: str, fields: dict) -> int:
    """Merge `fields` into one document, return the matched count"""
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    changes = dict(fields)
    changes["updated_at"] = datetime.now(timezone.utc)
    result = db[collection_name].update_one(id_filter(doc_id), {"$set": changes})
    return result.matched_count
