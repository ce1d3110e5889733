"""Mentor endpoints: the validation queue for assigned students."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

import skill_validation
from database import collection, to_object_id
from deps import PageParams, ok, require_role
from errors import ForbiddenError, NotFoundError
from mentorship import can_review, users_by_mentor
from schemas import Document, SkillDomain, SkillLevel, SkillSource
from skills import list_user_skills

router = APIRouter(prefix="/mentor", tags=["mentor"])

require_mentor = require_role("mentor")


class ValidationDecision(Document):
    note: Optional[str] = None


@router.get("/dashboard")
def dashboard(mentor: Dict[str, Any] = Depends(require_mentor)):
    return ok({
        "stats": skill_validation.stats(mentor),
        "inbox": skill_validation.grouped_inbox(mentor)[:5],
    })


@router.get("/users")
def my_users(mentor: Dict[str, Any] = Depends(require_mentor)):
    return ok(users_by_mentor(str(mentor["_id"])))


@router.get("/pending-validations")
def pending_validations(
    domain: Optional[SkillDomain] = None,
    level: Optional[SkillLevel] = None,
    source: Optional[SkillSource] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(),
    mentor: Dict[str, Any] = Depends(require_mentor),
):
    rows, meta = skill_validation.list_pending(mentor, domain, level, source, search, paging.page, paging.limit)
    return ok(rows, pagination=meta)


@router.get("/validations/inbox")
def validation_inbox(mentor: Dict[str, Any] = Depends(require_mentor)):
    return ok(skill_validation.grouped_inbox(mentor))


@router.get("/validations/users/{user_id}")
def user_validation_queue(user_id: str, mentor: Dict[str, Any] = Depends(require_mentor)):
    """One student's skills, for reviewing their requests side by side."""
    owner = collection("user").find_one({"_id": to_object_id(user_id, "user id")}, {"name": 1, "email": 1, "role": 1, "mentorId": 1})
    if not owner:
        raise NotFoundError("User")
    if not can_review(mentor, owner):
        raise ForbiddenError("You are not assigned to validate this user's skills")
    return ok({"user": owner, "skills": list_user_skills(user_id)})


@router.post("/validations/{user_skill_id}/approve")
def approve_skill(user_skill_id: str, payload: ValidationDecision, mentor: Dict[str, Any] = Depends(require_mentor)):
    return ok(skill_validation.approve(user_skill_id, mentor, payload.note), message="Skill validated")


@router.post("/validations/{user_skill_id}/reject")
def reject_skill(user_skill_id: str, payload: ValidationDecision, mentor: Dict[str, Any] = Depends(require_mentor)):
    return ok(skill_validation.reject(user_skill_id, mentor, payload.note), message="Skill rejected")


@router.get("/validations/stats")
def validation_stats(mentor: Dict[str, Any] = Depends(require_mentor)):
    return ok(skill_validation.stats(mentor))


@router.get("/validations/history")
def validation_history(paging: PageParams = Depends(), mentor: Dict[str, Any] = Depends(require_mentor)):
    items, meta = skill_validation.history(mentor, paging.page, paging.limit)
    return ok(items, pagination=meta)
