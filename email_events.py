"""
Lifecycle email events.

A lifecycle email goes out at most once per (user, event). Rendered
messages are written to the ``emailoutbox`` collection, which the
external mail sender drains.
"""

import logging
from typing import Any, Dict, List, Optional

from jinja2 import TemplateError
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import get_settings
from database import collection, create_document, now, to_object_id
from email_templates import get_template
from errors import WorkflowError
from logger import get_logger, log_with_context
from recipients import collect_recipients
from schemas import EmailOutbox, UserEmailEvent

logger = get_logger(__name__)

PREFERENCE_FOR_EVENT: Dict[str, Optional[str]] = {
    "WELCOME_USER": None,
    "ROLE_SELECTED": "roadmapUpdates",
    "READINESS_FIRST": "roadmapUpdates",
    "READINESS_MAJOR_IMPROVEMENT": "roadmapUpdates",
    "ROADMAP_CREATED": "roadmapUpdates",
    "MENTOR_SKILL_VALIDATED": "mentorMessages",
    "MENTOR_SKILL_REJECTED": "mentorMessages",
    "USER_INACTIVE_7": "systemAnnouncements",
    "USER_INACTIVE_14": "systemAnnouncements",
    "USER_INACTIVE_30": "systemAnnouncements",
    "PLACEMENT_SEASON_ALERT": "systemAnnouncements",
    "WEEKLY_PROGRESS_DIGEST": "weeklyReports",
}

# Skill feedback can legitimately repeat; every other event is once per user
REPEATABLE_EVENTS = {"MENTOR_SKILL_VALIDATED", "MENTOR_SKILL_REJECTED", "WEEKLY_PROGRESS_DIGEST"}


def should_send_email(event: str, preferences: Optional[Dict[str, Any]]) -> bool:
    if not preferences:
        return True
    key = PREFERENCE_FOR_EVENT.get(event)
    if key is None:
        return True
    return preferences.get(key) is not False


def queue_email(to: str, template: Dict[str, str], event: str, user_id: Optional[str] = None) -> str:
    return create_document(EmailOutbox, EmailOutbox(
        to=to, subject=template["subject"], html=template["html"], event=event, user_id=user_id,
    ))


def already_sent(user_id: str, dedup_key: str) -> bool:
    return collection("useremailevent").find_one({"userId": str(user_id), "event": dedup_key}) is not None


def trigger_email_event(user_id: str, event: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Render and queue ``event`` for ``user_id`` unless already sent.

    The sent marker is inserted before the email is queued; its unique
    (userId, event) index lets exactly one concurrent caller through.
    Returns ``{"success", "alreadySent", "error"?}``; never raises.
    """
    metadata = metadata or {}
    dedup_key = event
    if event in REPEATABLE_EVENTS:
        # keyed by subject of the event so each skill gets its own email
        dedup_key = f"{event}:{metadata.get('skillId') or metadata.get('week') or now().date().isoformat()}"

    marker_id = None
    try:
        if already_sent(user_id, dedup_key):
            logger.debug("Event %s already sent to user %s, skipping", dedup_key, user_id)
            return {"success": True, "alreadySent": True}

        user = collection("user").find_one({"_id": to_object_id(user_id, "user id")})
        if not user:
            return {"success": False, "alreadySent": False, "error": "User not found"}
        if not user.get("email"):
            return {"success": False, "alreadySent": False, "error": "User has no email address"}

        if not should_send_email(event, user.get("emailPreferences")):
            logger.debug("User %s disabled emails for %s", user_id, event)
            return {"success": True, "alreadySent": False}

        template = get_template(event, metadata, user.get("name"))
        try:
            marker_id = create_document(UserEmailEvent, UserEmailEvent(
                user_id=str(user_id), event=dedup_key, metadata=metadata, sent_at=now(),
            ))
        except DuplicateKeyError:
            logger.debug("Event %s for user %s claimed by another request", dedup_key, user_id)
            return {"success": True, "alreadySent": True}

        queue_email(user["email"], template, event, str(user_id))
        log_with_context(logger, logging.INFO, "Queued lifecycle email", user_id=str(user_id), event=event)
        return {"success": True, "alreadySent": False}
    except (PyMongoError, ValueError, TemplateError, WorkflowError) as e:
        logger.exception("Error triggering email event %s for %s", event, user_id)
        if marker_id is not None:
            # release the claim so a later trigger can retry
            try:
                collection("useremailevent").delete_one({"_id": to_object_id(marker_id)})
            except PyMongoError:
                logger.exception("Could not release email marker %s", marker_id)
        return {"success": False, "alreadySent": False, "error": str(e)}


def send_bulk_email(
    subject: str,
    message: str,
    recipients_text: Optional[str] = None,
    csv_content: Optional[str] = None,
    sent_by: Optional[str] = None,
) -> Dict[str, Any]:
    """Queue an admin broadcast to every parsed recipient.

    The recipient cap is checked before anything is written.
    """
    settings = get_settings()
    recipients: List[str] = collect_recipients(recipients_text, csv_content)
    if not recipients:
        raise WorkflowError("No valid email addresses provided", status_code=400)
    if len(recipients) > settings.MAX_BULK_RECIPIENTS:
        raise WorkflowError(
            f"Too many recipients ({len(recipients)}); the limit is {settings.MAX_BULK_RECIPIENTS}",
            status_code=400,
        )
    if not subject.strip() or not message.strip():
        raise WorkflowError("Subject and message are required", status_code=400)

    names = {
        u["email"]: u.get("name")
        for u in collection("user").find({"email": {"$in": recipients}}, {"email": 1, "name": 1})
    }
    queued = 0
    for address in recipients:
        template = get_template("ADMIN_BROADCAST", {"subject": subject, "message": message}, names.get(address))
        queue_email(address, template, "ADMIN_BROADCAST")
        queued += 1

    log_with_context(logger, logging.INFO, "Bulk email queued", user_id=sent_by, recipients=queued)
    return {"recipients": recipients, "queued": queued}
