"""Mentor application endpoints for the applying student."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

import mentor_applications
from deps import get_current_user, ok
from schemas import Document, MentorApplicationDraft

router = APIRouter(prefix="/mentor-application", tags=["mentor-application"])


class ConsentRequest(Document):
    accepted: bool
    version: Optional[str] = None


class SubmitRequest(Document):
    draft: Optional[MentorApplicationDraft] = None
    consent_accepted: Optional[bool] = None
    consent_version: Optional[str] = None


@router.get("/me")
def my_application(user: Dict[str, Any] = Depends(get_current_user)):
    return ok(mentor_applications.get_mine(str(user["_id"])))


@router.put("/draft")
def save_draft(draft: MentorApplicationDraft, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(mentor_applications.save_draft(user, draft), message="Draft saved")


@router.post("/consent")
def give_consent(payload: ConsentRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(mentor_applications.record_consent(user, payload.accepted, payload.version))


@router.post("/submit")
def submit_application(payload: SubmitRequest, user: Dict[str, Any] = Depends(get_current_user)):
    application = mentor_applications.submit(
        user, payload.draft, payload.consent_accepted, payload.consent_version
    )
    return ok(application, message="Application submitted")


@router.delete("/me")
def withdraw_application(user: Dict[str, Any] = Depends(get_current_user)):
    mentor_applications.withdraw(user)
    return ok(message="Application withdrawn")
