"""
MongoDB access helpers.

Every collection is named after the lowercased schema class (see
schemas.py). Handlers and services go through ``collection()`` so the
handle can be swapped (tests install an in-memory client).
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient

from config import get_settings
from errors import WorkflowError

_settings = get_settings()

# MongoClient connects lazily; creating it never blocks startup
client = MongoClient(_settings.DATABASE_URL, tz_aware=True, connect=False)
db = client[_settings.DATABASE_NAME]


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_collection_name(model_cls: Any) -> str:
    return model_cls.__name__.lower()


def collection(name: Union[str, type]):
    if db is None:
        raise WorkflowError("Database not available", status_code=500)
    if not isinstance(name, str):
        name = to_collection_name(name)
    return db[name]


def to_object_id(value: Any, what: str = "id") -> ObjectId:
    """Parse a 24-hex string (or pass through an ObjectId); 400 on garbage."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise WorkflowError(f"Invalid {what}", status_code=400)


def is_valid_object_id(value: Any) -> bool:
    return isinstance(value, ObjectId) or ObjectId.is_valid(str(value))


def create_document(collection_name: Union[str, type], data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document, stamping createdAt/updatedAt. Returns the new id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True)
    else:
        doc = dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc["updatedAt"] = stamp
    result = collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def ensure_indexes() -> None:
    """Create the unique indexes behind the one-per-key rules.

    Services still read before they write; the index is what decides a race.
    """
    collection("user").create_index("email", unique=True)
    collection("userskill").create_index([("userId", 1), ("skillId", 1)], unique=True)
    collection("mentorapplication").create_index("userId", unique=True)
    collection("useremailevent").create_index([("userId", 1), ("event", 1)], unique=True)
    collection("ticket").create_index("ticketNumber", unique=True)
    # Only one unread notification per (user, type); read ones pile up freely
    collection("notification").create_index(
        [("userId", 1), ("type", 1)],
        unique=True,
        partialFilterExpression={"isRead": False},
        name="unread_per_type",
    )


def paginate(
    collection_name: Union[str, type],
    filter_dict: Dict[str, Any],
    page: int,
    limit: int,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    """Fetch one page plus the ``{currentPage, totalPages, total, limit}`` block."""
    coll = collection(collection_name)
    total = coll.count_documents(filter_dict)
    cursor = coll.find(filter_dict)
    if sort:
        cursor = cursor.sort(sort)
    docs = list(cursor.skip((page - 1) * limit).limit(limit))
    return docs, page_meta(total, page, limit)


def page_meta(total: int, page: int, limit: int) -> Dict[str, int]:
    return {
        "currentPage": page,
        "totalPages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "limit": limit,
    }


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    out = {**doc}
    _id = out.pop("_id", None)
    if _id is not None:
        out["id"] = str(_id)
    for k, v in list(out.items()):
        out[k] = _serialize_value(v)
    return out


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value
