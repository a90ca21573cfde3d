"""
Database helpers for EduShare

MongoDB is reached through pymongo. `db` is None when the connection settings
are missing, so the health check can still report on it.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import MongoClient

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "edushare")

_client = None
db = None

if DATABASE_URL:
    _client = MongoClient(DATABASE_URL, tz_aware=True)
    db = _client[DATABASE_NAME]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_db():
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME.")
    return db


def create_document(
    collection_name: str,
    data: Union[BaseModel, dict],
    timestamp_fields: Iterable[str] = ("created_at", "updated_at"),
) -> str:
    """Insert a single document, stamping it with creation/update times."""
    database = get_db()
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)

    now = utcnow()
    for field in timestamp_fields:
        doc[field] = now

    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[dict]:
    database = get_db()
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
