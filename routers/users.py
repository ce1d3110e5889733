"""Signed-in user endpoints: profile, skills, target role, readiness."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field

import roles
import skills
from database import collection, now
from deps import get_current_user, ok
from mentorship import get_validation_recipients
from schemas import Document, EmailPreferences, SkillLevel, SkillSource
from skill_validation import request_validation

router = APIRouter(prefix="/users", tags=["users"])


class ProfileUpdate(Document):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    bio: Optional[str] = Field(None, max_length=1000)
    headline: Optional[str] = Field(None, max_length=200)
    education: Optional[List[Dict[str, Any]]] = None
    experience: Optional[List[Dict[str, Any]]] = None
    projects: Optional[List[Dict[str, Any]]] = None
    email_preferences: Optional[EmailPreferences] = None


class SkillClaim(Document):
    skill_id: str
    level: SkillLevel = "beginner"
    source: SkillSource = "self"


class TargetRole(Document):
    role_id: str


class ReadinessRequest(Document):
    role_id: Optional[str] = None


@router.get("/me")
def get_me(user: Dict[str, Any] = Depends(get_current_user)):
    return ok(user)


@router.patch("/me")
def update_me(payload: ProfileUpdate, user: Dict[str, Any] = Depends(get_current_user)):
    changes = payload.model_dump(by_alias=True, exclude_unset=True)
    update: Dict[str, Any] = {"updatedAt": now()}
    if "name" in changes:
        update["name"] = changes.pop("name").strip()
    if "emailPreferences" in changes:
        update["emailPreferences"] = changes.pop("emailPreferences")
    # The rest live under profile; targetRoleId changes through /me/target-role only
    for key, value in changes.items():
        update[f"profile.{key}"] = value
    collection("user").update_one({"_id": user["_id"]}, {"$set": update})
    return ok(collection("user").find_one({"_id": user["_id"]}))


@router.get("/me/mentor")
def my_mentor(user: Dict[str, Any] = Depends(get_current_user)):
    """Who reviews this user's skill validation requests."""
    return ok(get_validation_recipients(str(user["_id"])))


# Skills
@router.get("/me/skills")
def my_skills(user: Dict[str, Any] = Depends(get_current_user)):
    return ok(skills.list_user_skills(str(user["_id"])))


@router.post("/me/skills", status_code=201)
def claim_skill(payload: SkillClaim, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(skills.add_user_skill(str(user["_id"]), payload.skill_id, payload.level, payload.source))


@router.delete("/me/skills/{user_skill_id}")
def remove_skill(user_skill_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    skills.remove_user_skill(str(user["_id"]), user_skill_id)
    return ok(message="Skill removed")


@router.post("/me/skills/{user_skill_id}/request-validation")
def ask_for_validation(user_skill_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(request_validation(user_skill_id, user), message="Validation requested")


# Target role and readiness
@router.put("/me/target-role")
def choose_target_role(payload: TargetRole, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(roles.set_target_role(user, payload.role_id))


@router.post("/me/readiness")
def calculate_readiness(payload: ReadinessRequest, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(roles.calculate_for_user(user, payload.role_id))


@router.get("/me/readiness/history")
def readiness_history(
    limit: int = Query(20, ge=1, le=100),
    user: Dict[str, Any] = Depends(get_current_user),
):
    return ok(roles.readiness_history(str(user["_id"]), limit))
