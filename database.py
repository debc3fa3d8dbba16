"""
MongoDB access for the pizzeria.

The client is created from DATABASE_URL / DATABASE_NAME when the module is
imported. `db` stays None when no URL is configured; routes receive the handle
through the `get_db` dependency so tests can swap in another database.
"""
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from functools import wraps
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.decimal128 import Decimal128
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from errors import NotFound, StoreError

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME", "nonnas")

db = None
if database_url:
    _client = MongoClient(database_url)
    db = _client[database_name]


def get_db():
    if db is None:
        raise StoreError("Database not available. Check DATABASE_URL.")
    return db


def now_utc():
    return datetime.now(timezone.utc)


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise NotFound("Not found")


def to_money(value: Any) -> Decimal:
    """Normalise a stored or submitted amount to a Decimal in cents."""
    if value is None:
        return Decimal("0.00")
    if isinstance(value, Decimal128):
        value = value.to_decimal()
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_decimal128(value: Any) -> Decimal128:
    return Decimal128(to_money(value))


@contextmanager
def store_errors(action: str):
    """Re-raise driver failures as StoreError."""
    try:
        yield
    except PyMongoError as e:
        logger.error("Store failure while trying to %s: %s", action, e)
        raise StoreError(f"Failed to {action}") from e


def store_operation(action: str):
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            with store_errors(action):
                return fn(*args, **kwargs)
        return wrapper
    return deco


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()
    data_dict["created_at"] = now_utc()
    data_dict["updated_at"] = now_utc()
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None, newest_first: bool = False) -> List[dict]:
    cursor = database[collection_name].find(filter_dict or {})
    if newest_first:
        cursor = cursor.sort("created_at", DESCENDING)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes(database):
    database["cart_items"].create_index(
        [("user_id", ASCENDING), ("product_id", ASCENDING)], unique=True
    )
    database["orders"].create_index([("checkout_key", ASCENDING)], unique=True)
    database["orders"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["orders"].create_index([("status", ASCENDING)])
    database["order_items"].create_index([("order_id", ASCENDING)])
    database["products"].create_index([("category", ASCENDING)])
    database["products"].create_index([("is_featured", ASCENDING)])
    database["profiles"].create_index([("role", ASCENDING)])
