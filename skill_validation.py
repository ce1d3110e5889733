"""
Skill validation workflow.

    none / rejected --request--> pending --approve--> validated
                                 pending --reject---> rejected

Mentors act only on students assigned to them, admins on anyone, and
nobody on their own skills. Status changes are conditional updates on
the expected current status, so two reviewers racing on one item cannot
both win.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from config import get_settings
from database import collection, now, page_meta, to_object_id
from email_events import trigger_email_event
from errors import ForbiddenError, NotFoundError, WorkflowError
from logger import get_logger
from mentorship import PENDING_FILTER, admin_routed_user_ids, assigned_user_ids, can_review, get_validation_recipients
from notifications import create_or_update, send_notifications

logger = get_logger(__name__)

REVIEWABLE = ["none", "pending"]


def _load_user_skill(user_skill_id: str) -> Dict[str, Any]:
    item = collection("userskill").find_one({"_id": to_object_id(user_skill_id, "skill id")})
    if not item:
        raise NotFoundError("User skill")
    return item


def _skill_name(skill_id: str) -> str:
    skill = collection("skill").find_one({"_id": to_object_id(skill_id)}, {"name": 1}) if skill_id else None
    return (skill or {}).get("name", "Unknown skill")


def request_validation(user_skill_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    item = _load_user_skill(user_skill_id)
    if item["userId"] != str(user["_id"]):
        raise ForbiddenError("You can only request validation for your own skills")
    if item.get("validationStatus") == "pending":
        raise WorkflowError("Validation is already pending")
    if item.get("validationStatus") == "validated":
        raise WorkflowError("Skill is already validated")

    stamp = now()
    collection("userskill").update_one(
        {"_id": item["_id"]},
        {"$set": {
            "validationStatus": "pending",
            "validatedBy": None,
            "validatedAt": None,
            "validationNote": None,
            "requestedAt": stamp,
            "updatedAt": stamp,
        }},
    )

    skill_name = _skill_name(item.get("skillId"))
    route = get_validation_recipients(str(user["_id"]))
    send_notifications(
        route["recipientIds"],
        "mentor_validation",
        title="New Skill Validation Request",
        message=f"{user.get('name')} requested validation for {skill_name}.",
        action_url="/mentor/validation-queue" if route["recipientType"] == "mentor" else "/admin/mentorship",
        metadata={"userSkillId": str(item["_id"]), "userId": str(user["_id"]), "skillName": skill_name},
    )
    logger.info("Validation requested for %s, routed to %s (%s)", item["_id"], route["recipientType"], route["reason"])
    return {
        "userSkill": {**item, "validationStatus": "pending"},
        "routedTo": route["recipientType"],
        "message": "Your skill is now pending validation by a mentor",
    }


def _queue_owner_ids(reviewer: Dict[str, Any]) -> List[str]:
    """Users whose requests land in this reviewer's queue."""
    if reviewer.get("role") == "admin":
        return admin_routed_user_ids()
    return assigned_user_ids(str(reviewer["_id"]))


def list_pending(
    reviewer: Dict[str, Any],
    domain: Optional[str] = None,
    level: Optional[str] = None,
    source: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    owner_ids = _queue_owner_ids(reviewer)
    if not owner_ids:
        return [], page_meta(0, page, limit)

    filt: Dict[str, Any] = {"userId": {"$in": owner_ids}, **PENDING_FILTER}
    if level:
        filt["level"] = level
    if source:
        filt["source"] = source
    items = list(collection("userskill").find(filt).sort("createdAt", -1))

    users = {
        str(u["_id"]): u
        for u in collection("user").find({"_id": {"$in": [to_object_id(i) for i in owner_ids]}}, {"name": 1, "email": 1})
    }
    skill_ids = list({to_object_id(i["skillId"]) for i in items if i.get("skillId")})
    skills = {str(s["_id"]): s for s in collection("skill").find({"_id": {"$in": skill_ids}}, {"name": 1, "domain": 1})}

    needle = re.escape(search.strip()) if search and search.strip() else None
    rows = []
    for item in items:
        owner = users.get(item["userId"], {})
        skill = skills.get(str(item.get("skillId")), {})
        row = {
            "id": str(item["_id"]),
            "userId": item["userId"],
            "userName": owner.get("name"),
            "userEmail": owner.get("email"),
            "skillId": str(item.get("skillId")),
            "skillName": skill.get("name"),
            "skillDomain": skill.get("domain") or "other",
            "level": item.get("level"),
            "source": item.get("source"),
            "validationStatus": item.get("validationStatus"),
            "requestedAt": item.get("requestedAt") or item.get("createdAt"),
        }
        if domain and row["skillDomain"] != domain:
            continue
        if needle and not any(
            re.search(needle, row[k] or "", re.IGNORECASE) for k in ("userName", "userEmail", "skillName")
        ):
            continue
        rows.append(row)

    start = (page - 1) * limit
    return rows[start:start + limit], page_meta(len(rows), page, limit)


def grouped_inbox(mentor: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Students with pending requests, oldest waiting first."""
    owner_ids = _queue_owner_ids(mentor)
    if not owner_ids:
        return []
    groups: Dict[str, Dict[str, Any]] = {}
    for item in collection("userskill").find({"userId": {"$in": owner_ids}, "validationStatus": "pending"}):
        at = item.get("requestedAt") or item.get("createdAt")
        group = groups.setdefault(item["userId"], {"userId": item["userId"], "pendingCount": 0, "oldestPendingAt": at})
        group["pendingCount"] += 1
        if at is not None and (group["oldestPendingAt"] is None or at < group["oldestPendingAt"]):
            group["oldestPendingAt"] = at

    users = {
        str(u["_id"]): u
        for u in collection("user").find({"_id": {"$in": [to_object_id(i) for i in groups]}}, {"name": 1, "email": 1, "profile": 1})
    }
    result = []
    for user_id, group in groups.items():
        user = users.get(user_id, {})
        role_id = (user.get("profile") or {}).get("targetRoleId")
        role = collection("role").find_one({"_id": to_object_id(role_id)}, {"name": 1}) if role_id else None
        result.append({
            **group,
            "name": user.get("name"),
            "email": user.get("email"),
            "targetRole": (role or {}).get("name", "Not Set"),
        })
    result.sort(key=lambda g: (g["oldestPendingAt"] is None, g["oldestPendingAt"] or 0))
    return result


def _resolve(user_skill_id: str, reviewer: Dict[str, Any], status: str, note: Optional[str]) -> Tuple[Dict[str, Any], Dict[str, Any], str]:
    item = _load_user_skill(user_skill_id)
    owner = collection("user").find_one({"_id": to_object_id(item["userId"])})
    if not owner:
        raise NotFoundError("User")
    if str(owner["_id"]) == str(reviewer["_id"]):
        raise ForbiddenError("Cannot review your own skills")
    if not can_review(reviewer, owner):
        raise ForbiddenError("You are not assigned to validate this user's skills")

    current = item.get("validationStatus")
    if current == "validated":
        raise WorkflowError("Skill is already validated")
    if current == "rejected":
        raise WorkflowError("Skill is already rejected")

    update: Dict[str, Any] = {
        "validationStatus": status,
        "validatedBy": str(reviewer["_id"]),
        "validatedAt": now(),
        "validationNote": note,
        "updatedAt": now(),
    }
    if status == "validated":
        update["source"] = "validated"
        update["originalSource"] = item.get("source")

    result = collection("userskill").update_one(
        {"_id": item["_id"], "validationStatus": {"$in": REVIEWABLE}},
        {"$set": update},
    )
    if result.modified_count == 0:
        raise WorkflowError("Skill was resolved by someone else", status_code=409)

    return {**item, **update}, owner, _skill_name(item.get("skillId"))


def approve(user_skill_id: str, reviewer: Dict[str, Any], note: Optional[str] = None) -> Dict[str, Any]:
    note = (note or "").strip() or None
    if note and len(note) > get_settings().MAX_VALIDATION_NOTE_CHARS:
        raise WorkflowError("Validation note cannot exceed 500 characters", status_code=422)

    item, owner, skill_name = _resolve(user_skill_id, reviewer, "validated", note)
    meta = {
        "userSkillId": str(item["_id"]),
        "skillName": skill_name,
        "mentorId": str(reviewer["_id"]),
        "mentorName": reviewer.get("name"),
        "action": "validated",
    }
    create_or_update(
        owner["_id"], "mentor_validation",
        title="Skill Validated",
        message=f"{reviewer.get('name')} validated your {skill_name} skill.",
        action_url="/dashboard/skills",
        metadata=meta,
    )
    create_or_update(
        owner["_id"], "readiness_outdated",
        title="Readiness Update Available",
        message=f"Your {skill_name} skill was validated. Recalculate your readiness to see the change.",
        action_url="/dashboard/readiness",
        metadata=meta,
    )
    trigger_email_event(str(owner["_id"]), "MENTOR_SKILL_VALIDATED", {
        "skillName": skill_name,
        "skillId": str(item.get("skillId")),
        "mentorName": reviewer.get("name"),
    })
    logger.info("Skill %s validated by %s", item["_id"], reviewer["_id"])
    return item


def reject(user_skill_id: str, reviewer: Dict[str, Any], note: Optional[str]) -> Dict[str, Any]:
    settings = get_settings()
    note = (note or "").strip()
    if len(note) < settings.MIN_REJECTION_NOTE_CHARS:
        raise WorkflowError(
            f"Rejection note must be at least {settings.MIN_REJECTION_NOTE_CHARS} characters", status_code=422
        )
    if len(note) > settings.MAX_VALIDATION_NOTE_CHARS:
        raise WorkflowError("Rejection note cannot exceed 500 characters", status_code=422)

    item, owner, skill_name = _resolve(user_skill_id, reviewer, "rejected", note)
    meta = {
        "userSkillId": str(item["_id"]),
        "skillName": skill_name,
        "mentorId": str(reviewer["_id"]),
        "mentorName": reviewer.get("name"),
        "validationNote": note,
        "action": "rejected",
    }
    create_or_update(
        owner["_id"], "readiness_outdated",
        title="Skill Validation Update",
        message=f"Your {skill_name} skill was not approved. Recalculate your readiness and consider regenerating your roadmap.",
        action_url="/dashboard/readiness",
        metadata={**meta, "recommendRoadmapRegeneration": True},
    )
    create_or_update(
        owner["_id"], "mentor_validation",
        title="Skill Needs Improvement",
        message=f'{reviewer.get("name")} reviewed your {skill_name} skill: "{note}"',
        action_url="/dashboard/skills",
        metadata=meta,
    )
    trigger_email_event(str(owner["_id"]), "MENTOR_SKILL_REJECTED", {
        "skillName": skill_name,
        "skillId": str(item.get("skillId")),
        "mentorName": reviewer.get("name"),
        "rejectionNote": note,
    })
    logger.info("Skill %s rejected by %s", item["_id"], reviewer["_id"])
    return item


def stats(mentor: Dict[str, Any]) -> Dict[str, int]:
    owner_ids = _queue_owner_ids(mentor)
    if not owner_ids:
        return {"pending": 0, "validated": 0, "rejected": 0, "total": 0, "assignedStudents": 0}
    skills = collection("userskill")
    base = {"userId": {"$in": owner_ids}}
    pending = skills.count_documents({**base, "validationStatus": "pending"})
    validated = skills.count_documents({**base, "validationStatus": "validated", "validatedBy": str(mentor["_id"])})
    rejected = skills.count_documents({**base, "validationStatus": "rejected", "validatedBy": str(mentor["_id"])})
    return {
        "pending": pending,
        "validated": validated,
        "rejected": rejected,
        "total": validated + rejected,
        "assignedStudents": len(owner_ids),
    }


def history(mentor: Dict[str, Any], page: int, limit: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    filt = {"validatedBy": str(mentor["_id"]), "validationStatus": {"$in": ["validated", "rejected"]}}
    coll = collection("userskill")
    total = coll.count_documents(filt)
    items = list(coll.find(filt).sort("validatedAt", -1).skip((page - 1) * limit).limit(limit))
    for item in items:
        item["skillName"] = _skill_name(item.get("skillId"))
    return items, page_meta(total, page, limit)
