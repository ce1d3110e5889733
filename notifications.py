"""In-app notifications.

At most one unread notification exists per (user, type): a repeat event
of the same type rewrites the unread one instead of stacking a new entry.
Senders never raise; a failed notification must not fail the write that
triggered it.
"""

from typing import Any, Dict, Iterable, List, Optional, Tuple

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from database import collection, create_document, now, paginate, to_object_id
from logger import get_logger
from schemas import ActivityLog, Notification

logger = get_logger(__name__)

COLL = "notification"


def _upsert_unread(doc: Dict[str, Any]) -> Dict[str, Any]:
    stamp = now()
    return collection(COLL).find_one_and_update(
        {"userId": doc["userId"], "type": doc["type"], "isRead": False},
        {"$set": {**doc, "updatedAt": stamp}, "$setOnInsert": {"createdAt": stamp}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def create_or_update(
    user_id: str,
    type: str,
    title: str,
    message: str,
    action_url: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    try:
        note = Notification(
            user_id=str(user_id),
            type=type,
            title=title,
            message=message[:1000],
            action_url=action_url,
            metadata=metadata,
        )
        doc = note.model_dump(by_alias=True)
        try:
            return _upsert_unread(doc)
        except DuplicateKeyError:
            # a concurrent sender inserted the unread one first; rewrite it
            return _upsert_unread(doc)
    except (PyMongoError, ValueError):
        logger.exception("Error creating/updating notification")
        return None


def send_notifications(
    user_ids: Iterable[str],
    type: str,
    title: str,
    message: str,
    action_url: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> int:
    sent = 0
    for user_id in user_ids:
        if create_or_update(user_id, type, title, message, action_url, metadata) is not None:
            sent += 1
    return sent


def list_for_user(user_id: str, unread_only: bool, page: int, limit: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    filt: Dict[str, Any] = {"userId": str(user_id)}
    if unread_only:
        filt["isRead"] = False
    return paginate(COLL, filt, page, limit, sort=[("updatedAt", -1)])


def unread_count(user_id: str) -> int:
    return collection(COLL).count_documents({"userId": str(user_id), "isRead": False})


def mark_read(user_id: str, notification_ids: Optional[List[str]] = None) -> int:
    """Mark the given notifications (or all of them) read; returns how many changed."""
    filt: Dict[str, Any] = {"userId": str(user_id), "isRead": False}
    if notification_ids:
        filt["_id"] = {"$in": [to_object_id(n, "notification id") for n in notification_ids]}
    result = collection(COLL).update_many(filt, {"$set": {"isRead": True, "updatedAt": now()}})
    return result.modified_count


def log_activity(user_id: str, action: str, **details: Any) -> None:
    """Append to the audit trail; failures are logged only."""
    try:
        create_document(ActivityLog, ActivityLog(user_id=str(user_id), action=action, details=details))
    except PyMongoError:
        logger.exception("Failed to log activity %s for %s", action, user_id)
