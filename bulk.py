"""Bulk admin actions over jobs, internships, and users.

Each id is applied on its own and reported back as ``{id, ok, error?}``;
one bad id never sinks the rest of the batch.
"""

from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from database import collection, is_valid_object_id, now
from logger import get_logger
from notifications import log_activity

logger = get_logger(__name__)

LISTING_ACTIONS: Dict[str, Optional[Dict[str, Any]]] = {
    "activate": {"isActive": True},
    "deactivate": {"isActive": False},
    "feature": {"isFeatured": True},
    "unfeature": {"isFeatured": False},
    "publish": {"status": "active", "isActive": True},
    "unpublish": {"status": "draft", "isActive": False},
    "delete": None,
}

USER_ACTIONS: Dict[str, Optional[Dict[str, Any]]] = {
    "activate": {"isActive": True},
    "deactivate": {"isActive": False},
    "promote": {"role": "mentor", "mentorId": None},
    "demote": {"role": "user"},
    "delete": None,
}


def _user_guard(actor_id: str) -> Callable[[Dict[str, Any], str], Optional[str]]:
    def guard(doc: Dict[str, Any], action: str) -> Optional[str]:
        if str(doc["_id"]) == actor_id and action in ("deactivate", "demote", "delete"):
            return "Cannot apply this action to your own account"
        if doc.get("role") == "admin" and action in ("promote", "demote", "delete", "deactivate"):
            return "Admin accounts cannot be changed in bulk"
        if action == "promote" and doc.get("role") != "user":
            return "Only users can be promoted to mentor"
        if action == "demote" and doc.get("role") != "mentor":
            return "Only mentors can be demoted"
        return None
    return guard


def apply_bulk_action(
    collection_name: str,
    action: str,
    ids: List[str],
    actor_id: str,
    guard: Optional[Callable[[Dict[str, Any], str], Optional[str]]] = None,
) -> Dict[str, Any]:
    actions = USER_ACTIONS if collection_name == "user" else LISTING_ACTIONS
    if action not in actions:
        raise ValueError(f"Invalid action: {action}")
    change = actions[action]
    coll = collection(collection_name)

    results = []
    for raw_id in dict.fromkeys(ids):
        if not is_valid_object_id(raw_id):
            results.append({"id": raw_id, "ok": False, "error": "Invalid id"})
            continue
        _id = ObjectId(raw_id)
        try:
            doc = coll.find_one({"_id": _id})
            if doc is None:
                results.append({"id": raw_id, "ok": False, "error": "Not found"})
                continue
            refusal = guard(doc, action) if guard else None
            if refusal:
                results.append({"id": raw_id, "ok": False, "error": refusal})
                continue
            if change is None:
                coll.delete_one({"_id": _id})
            else:
                coll.update_one({"_id": _id}, {"$set": {**change, "updatedAt": now()}})
            results.append({"id": raw_id, "ok": True})
        except PyMongoError as e:
            logger.exception("Bulk %s failed for %s/%s", action, collection_name, raw_id)
            results.append({"id": raw_id, "ok": False, "error": str(e)})

    succeeded = sum(1 for r in results if r["ok"])
    log_activity(actor_id, f"bulk_{action}", collection=collection_name, succeeded=succeeded, requested=len(results))
    return {
        "action": action,
        "results": results,
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }


def bulk_users(action: str, ids: List[str], actor_id: str) -> Dict[str, Any]:
    result = apply_bulk_action("user", action, ids, actor_id, guard=_user_guard(actor_id))
    if action in ("demote", "delete"):
        # Students of a mentor who is gone fall back to the admin queue
        gone = [r["id"] for r in result["results"] if r["ok"]]
        if gone:
            collection("user").update_many(
                {"mentorId": {"$in": gone}, "role": "user"},
                {"$set": {"mentorId": None, "mentorAssignedAt": None, "updatedAt": now()}},
            )
    return result
