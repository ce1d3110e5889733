"""
Mentor application workflow.

    draft --submit--> submitted --approve--> approved
                      submitted --reject---> rejected
                       rejected --save----> draft

Submission checks consent and motivation on the stored document, and the
submit call may carry the consent flag and the latest draft so all three
land in one document write.
"""

from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from config import get_settings
from database import collection, now, to_object_id
from errors import NotFoundError, WorkflowError
from logger import get_logger
from mentorship import admin_ids
from notifications import create_or_update, log_activity, send_notifications
from schemas import MentorApplication, MentorApplicationDraft

logger = get_logger(__name__)

COLL = "mentorapplication"

# Fields only the server writes; stripped from any client draft
SERVER_OWNED = {
    "_id", "id", "userId", "status", "submittedAt", "reviewedAt", "reviewedBy",
    "rejectionReason", "consentAccepted", "consentAcceptedAt", "consentVersion",
    "createdAt", "updatedAt",
}


def _draft_fields(draft: MentorApplicationDraft) -> Dict[str, Any]:
    fields = draft.model_dump(by_alias=True)
    return {k: v for k, v in fields.items() if k not in SERVER_OWNED}


def _insert_fields(user_id: str, set_fields: Dict[str, Any]) -> Dict[str, Any]:
    """Defaults for a new application, minus the fields the same update sets."""
    blank = MentorApplication(user_id=user_id).model_dump(by_alias=True)
    return {k: v for k, v in blank.items() if k not in set_fields}


def get_mine(user_id: str) -> Optional[Dict[str, Any]]:
    return collection(COLL).find_one({"userId": str(user_id)})


def _require_student(user: Dict[str, Any]) -> None:
    if user.get("role") != "user":
        raise WorkflowError("Only students can apply to be mentors", status_code=403)


def save_draft(user: Dict[str, Any], draft: MentorApplicationDraft) -> Dict[str, Any]:
    _require_student(user)
    user_id = str(user["_id"])
    existing = get_mine(user_id)
    if existing and existing.get("status") == "approved":
        raise WorkflowError("Application already approved")
    if existing and existing.get("status") == "submitted":
        raise WorkflowError("Application is under review; withdraw it to edit")

    stamp = now()
    fields = {**_draft_fields(draft), "status": "draft", "updatedAt": stamp}
    return collection(COLL).find_one_and_update(
        {"userId": user_id},
        {"$set": fields, "$setOnInsert": {**_insert_fields(user_id, fields), "createdAt": stamp}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def record_consent(user: Dict[str, Any], accepted: bool, version: Optional[str] = None) -> Dict[str, Any]:
    version = version or get_settings().CONSENT_VERSION
    application = collection(COLL).find_one_and_update(
        {"userId": str(user["_id"]), "status": {"$in": ["draft", "rejected"]}},
        {"$set": {
            "consentAccepted": bool(accepted),
            "consentAcceptedAt": now() if accepted else None,
            "consentVersion": version,
            "updatedAt": now(),
        }},
        return_document=ReturnDocument.AFTER,
    )
    if not application:
        raise NotFoundError("Application")
    log_activity(user["_id"], "mentor_consent_given", type="mentor_role_change_consent", version=version)
    return application


def submit(
    user: Dict[str, Any],
    draft: Optional[MentorApplicationDraft] = None,
    consent_accepted: Optional[bool] = None,
    consent_version: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate and submit, merging any draft/consent sent with the request.

    Nothing is written unless every check passes.
    """
    _require_student(user)
    settings = get_settings()
    user_id = str(user["_id"])
    existing = get_mine(user_id)

    if existing is None and draft is None:
        raise NotFoundError("Application")
    if existing and existing.get("status") == "approved":
        raise WorkflowError("Application already approved")
    if existing and existing.get("status") == "submitted":
        raise WorkflowError("Application already submitted")

    merged: Dict[str, Any] = dict(existing or {})
    update: Dict[str, Any] = {}
    if draft is not None:
        update.update(_draft_fields(draft))
    if consent_accepted:
        update.update({
            "consentAccepted": True,
            "consentAcceptedAt": now(),
            "consentVersion": consent_version or settings.CONSENT_VERSION,
        })
    merged.update(update)

    if not merged.get("consentAccepted"):
        raise WorkflowError("You must accept the consent terms for the role change")
    motivation = ((merged.get("intent") or {}).get("motivation") or "").strip()
    if len(motivation) < settings.MIN_MOTIVATION_CHARS:
        raise WorkflowError(
            f"Please provide a detailed motivation (min {settings.MIN_MOTIVATION_CHARS} chars)", status_code=422
        )

    stamp = now()
    fields = {**update, "status": "submitted", "submittedAt": stamp, "rejectionReason": None, "updatedAt": stamp}
    try:
        application = collection(COLL).find_one_and_update(
            {"userId": user_id, "status": {"$nin": ["submitted", "approved"]}},
            {
                "$set": fields,
                "$setOnInsert": {**_insert_fields(user_id, fields), "createdAt": stamp},
            },
            upsert=existing is None,
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        # another submit created the application between our read and write
        application = None
    if not application:
        raise WorkflowError("Application changed while submitting; reload and retry", status_code=409)

    log_activity(user_id, "mentor_application_submitted", applicationId=str(application["_id"]))
    send_notifications(
        admin_ids(), "mentor_application",
        title="New Mentor Application",
        message=f"{user.get('name')} has submitted a detailed mentor application.",
        action_url=f"/admin/mentor-applications/{application['_id']}",
        metadata={"applicationId": str(application["_id"]), "userId": user_id},
    )
    logger.info("Mentor application %s submitted by %s", application["_id"], user_id)
    return application


def withdraw(user: Dict[str, Any]) -> None:
    result = collection(COLL).delete_one(
        {"userId": str(user["_id"]), "status": {"$in": ["draft", "submitted", "rejected"]}}
    )
    if result.deleted_count == 0:
        raise NotFoundError("Application")


# Admin review
def list_applications(status: Optional[str] = "submitted") -> List[Dict[str, Any]]:
    filt = {"status": status} if status else {}
    apps = list(collection(COLL).find(filt).sort("submittedAt", 1))
    users = {
        str(u["_id"]): u
        for u in collection("user").find(
            {"_id": {"$in": [to_object_id(a["userId"]) for a in apps]}}, {"name": 1, "email": 1, "profile": 1}
        )
    }
    for application in apps:
        application["user"] = users.get(application["userId"])
    return apps


def get_application(application_id: str) -> Dict[str, Any]:
    application = collection(COLL).find_one({"_id": to_object_id(application_id, "application id")})
    if not application:
        raise NotFoundError("Application")
    application["user"] = collection("user").find_one(
        {"_id": to_object_id(application["userId"])}, {"name": 1, "email": 1, "profile": 1}
    )
    return application


def _review(application_id: str, admin: Dict[str, Any], status: str, reason: Optional[str] = None) -> Dict[str, Any]:
    application = collection(COLL).find_one_and_update(
        {"_id": to_object_id(application_id, "application id"), "status": "submitted"},
        {"$set": {
            "status": status,
            "reviewedAt": now(),
            "reviewedBy": str(admin["_id"]),
            "rejectionReason": reason,
            "updatedAt": now(),
        }},
        return_document=ReturnDocument.AFTER,
    )
    if application is None:
        if collection(COLL).find_one({"_id": to_object_id(application_id)}) is None:
            raise NotFoundError("Application")
        raise WorkflowError(f"Only submitted applications can be {status}")
    return application


def approve(application_id: str, admin: Dict[str, Any]) -> Dict[str, Any]:
    application = _review(application_id, admin, "approved")
    user_id = application["userId"]
    # A new mentor no longer sits in anyone's student list
    collection("user").update_one(
        {"_id": to_object_id(user_id)},
        {"$set": {"role": "mentor", "mentorId": None, "updatedAt": now()}},
    )
    log_activity(user_id, "role_changed", type="mentor_application_approved",
                 applicationId=str(application["_id"]), adminId=str(admin["_id"]))
    create_or_update(
        user_id, "role_changed",
        title="Mentor Application Approved",
        message="Your application to become a mentor has been approved. Welcome to the team!",
        action_url="/mentor",
    )
    return application


def reject(application_id: str, admin: Dict[str, Any], reason: str) -> Dict[str, Any]:
    reason = (reason or "").strip()
    if not reason:
        raise WorkflowError("Rejection reason is required", status_code=422)
    application = _review(application_id, admin, "rejected", reason)
    create_or_update(
        application["userId"], "role_changed",
        title="Mentor Application Update",
        message=f"Your mentor application was not approved. Reason: {reason}",
        action_url="/dashboard/mentor-apply",
    )
    return application
