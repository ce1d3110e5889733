"""Mentor assignment, workload, and validation routing.

Routing rule: a user with an active assigned mentor routes to that mentor
only; everyone else (no mentor, inactive mentor, unknown user) routes to
the admin queue.
"""

from typing import Any, Dict, List, Optional

from database import collection, is_valid_object_id, now, to_object_id
from errors import NotFoundError, WorkflowError
from logger import get_logger
from notifications import log_activity

logger = get_logger(__name__)

PENDING_FILTER = {
    "validationStatus": {"$in": ["none", "pending"]},
    "source": {"$in": ["self", "resume", "course", "project"]},
}


def admin_ids() -> List[str]:
    return [str(u["_id"]) for u in collection("user").find({"role": "admin", "isActive": True}, {"_id": 1})]


def get_validation_recipients(user_id: str) -> Dict[str, Any]:
    user = None
    if user_id:
        user = collection("user").find_one({"_id": to_object_id(user_id, "user id")}, {"mentorId": 1})
    if not user:
        return {"recipientType": "admin", "recipientIds": admin_ids(), "reason": "User not found"}

    mentor_id = user.get("mentorId")
    if not mentor_id:
        return {"recipientType": "admin", "recipientIds": admin_ids(), "reason": "No mentor assigned"}

    mentor = collection("user").find_one({"_id": to_object_id(mentor_id)}, {"isActive": 1})
    if not mentor or mentor.get("isActive") is False:
        return {"recipientType": "admin", "recipientIds": admin_ids(), "reason": "Assigned mentor is inactive"}

    return {"recipientType": "mentor", "recipientIds": [str(mentor_id)], "reason": "User has assigned mentor"}


def can_review(reviewer: Dict[str, Any], owner: Dict[str, Any]) -> bool:
    """Admins review anyone; a mentor only their own students; nobody themselves."""
    if str(reviewer["_id"]) == str(owner["_id"]):
        return False
    if reviewer.get("role") == "admin":
        return True
    return reviewer.get("role") == "mentor" and owner.get("mentorId") == str(reviewer["_id"])


def _require_active_mentor(mentor_id: str) -> Dict[str, Any]:
    mentor = collection("user").find_one({"_id": to_object_id(mentor_id, "mentor id")})
    if not mentor:
        raise NotFoundError("Mentor")
    if mentor.get("role") != "mentor":
        raise WorkflowError("Selected user is not a mentor", code="INVALID_MENTOR_ROLE")
    if not mentor.get("isActive", True):
        raise WorkflowError("Cannot assign inactive mentor", code="MENTOR_INACTIVE")
    return mentor


def assign_mentor(user_id: str, mentor_id: Optional[str], admin_id: str) -> Dict[str, Any]:
    """Assign, change, or (``mentor_id=None``) remove a user's mentor."""
    users = collection("user")
    user = users.find_one({"_id": to_object_id(user_id, "user id")})
    if not user:
        raise NotFoundError("User")
    if user.get("role") != "user":
        raise WorkflowError('Can only assign mentors to users with "user" role', code="INVALID_USER_ROLE")

    previous = user.get("mentorId")

    if mentor_id is None:
        users.update_one(
            {"_id": user["_id"]},
            {"$set": {"mentorId": None, "mentorAssignedAt": None, "mentorAssignedBy": None, "updatedAt": now()}},
        )
        log_activity(user_id, "mentor_unassigned", previousMentorId=previous, unassignedBy=admin_id)
        return {"previousMentorId": previous, "newMentorId": None, "message": "Mentor unassigned successfully"}

    if previous == str(mentor_id):
        raise WorkflowError("This mentor is already assigned to this user", code="ALREADY_ASSIGNED")
    mentor = _require_active_mentor(mentor_id)

    stamp = now()
    users.update_one(
        {"_id": user["_id"]},
        {"$set": {"mentorId": str(mentor["_id"]), "mentorAssignedAt": stamp, "mentorAssignedBy": admin_id, "updatedAt": stamp}},
    )
    log_activity(user_id, "mentor_changed" if previous else "mentor_assigned",
                 previousMentorId=previous, newMentorId=str(mentor["_id"]), changedBy=admin_id)
    logger.info("Mentor %s assigned to user %s", mentor["_id"], user_id)
    return {
        "previousMentorId": previous,
        "newMentorId": str(mentor["_id"]),
        "message": f"Successfully assigned {mentor.get('name')} as mentor to {user.get('name')}",
    }


def assigned_user_ids(mentor_id: str) -> List[str]:
    return [
        str(u["_id"])
        for u in collection("user").find({"mentorId": str(mentor_id), "role": "user", "isActive": True}, {"_id": 1})
    ]


def admin_routed_user_ids() -> List[str]:
    """Students whose validation requests go to the admin queue.

    Same rule as ``get_validation_recipients``: no mentor, or a mentor that
    is missing or inactive.
    """
    students = list(collection("user").find({"role": "user", "isActive": True}, {"mentorId": 1}))
    mentor_ids = {s["mentorId"] for s in students if s.get("mentorId")}
    live = {
        str(m["_id"])
        for m in collection("user").find(
            {
                "_id": {"$in": [to_object_id(i) for i in mentor_ids if is_valid_object_id(i)]},
                "isActive": {"$ne": False},
            },
            {"_id": 1},
        )
    }
    return [str(s["_id"]) for s in students if s.get("mentorId") not in live]


def users_by_mentor(mentor_id: str) -> List[Dict[str, Any]]:
    users = list(
        collection("user")
        .find({"mentorId": str(mentor_id), "role": "user", "isActive": True}, {"name": 1, "email": 1, "mentorAssignedAt": 1})
        .sort("mentorAssignedAt", -1)
    )
    pending = _pending_counts([str(u["_id"]) for u in users])
    return [
        {
            "id": str(u["_id"]),
            "name": u.get("name"),
            "email": u.get("email"),
            "assignedAt": u.get("mentorAssignedAt"),
            "pendingValidations": pending.get(str(u["_id"]), 0),
        }
        for u in users
    ]


def _pending_counts(user_ids: List[str]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    if not user_ids:
        return counts
    for skill in collection("userskill").find({"userId": {"$in": user_ids}, **PENDING_FILTER}, {"userId": 1}):
        counts[skill["userId"]] = counts.get(skill["userId"], 0) + 1
    return counts


def mentor_workload() -> List[Dict[str, Any]]:
    """Assigned students and pending validations per mentor, busiest first."""
    workloads = []
    for mentor in collection("user").find({"role": "mentor"}, {"name": 1, "email": 1, "isActive": 1}):
        user_ids = assigned_user_ids(str(mentor["_id"]))
        workloads.append({
            "mentorId": str(mentor["_id"]),
            "mentorName": mentor.get("name"),
            "mentorEmail": mentor.get("email"),
            "assignedUsersCount": len(user_ids),
            "pendingValidationsCount": sum(_pending_counts(user_ids).values()),
            "isActive": mentor.get("isActive", True),
        })
    workloads.sort(key=lambda w: w["assignedUsersCount"], reverse=True)
    return workloads


def suggest_mentor() -> Optional[Dict[str, Any]]:
    """The active mentor with the lightest (students, pending) load."""
    active = [w for w in mentor_workload() if w["isActive"]]
    if not active:
        return None
    return min(active, key=lambda w: (w["assignedUsersCount"], w["pendingValidationsCount"], w["mentorName"] or ""))
