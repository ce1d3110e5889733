"""Skill catalog and per-user skill claims."""

import re
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from database import collection, create_document, now, to_object_id
from errors import ForbiddenError, NotFoundError, WorkflowError
from schemas import Skill, UserSkill


def normalize_name(name: str) -> str:
    return " ".join(name.split()).strip().lower()


# Catalog
def create_skill(skill: Skill) -> str:
    normalized = normalize_name(skill.name)
    if collection("skill").find_one({"normalizedName": normalized}):
        raise WorkflowError(f"Skill '{skill.name}' already exists", status_code=409)
    return create_document("skill", skill.model_copy(update={"normalized_name": normalized}))


def update_skill(skill_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    if "name" in changes:
        changes["normalizedName"] = normalize_name(changes["name"])
    changes["updatedAt"] = now()
    _id = to_object_id(skill_id, "skill id")
    result = collection("skill").update_one({"_id": _id}, {"$set": changes})
    if result.matched_count == 0:
        raise NotFoundError("Skill")
    return collection("skill").find_one({"_id": _id})


def deactivate_skill(skill_id: str) -> None:
    # Soft delete; user claims and role benchmarks keep their reference
    update_skill(skill_id, {"isActive": False})


def list_skills(domain: Optional[str] = None, search: Optional[str] = None, include_inactive: bool = False) -> List[Dict[str, Any]]:
    filt: Dict[str, Any] = {}
    if not include_inactive:
        filt["isActive"] = True
    if domain:
        filt["domain"] = domain
    if search:
        filt["normalizedName"] = {"$regex": re.escape(normalize_name(search))}
    return list(collection("skill").find(filt).sort("name", 1))


# User claims
def add_user_skill(user_id: str, skill_id: str, level: str, source: str = "self") -> Dict[str, Any]:
    """Claim a skill, or update the level of an existing claim.

    Changing the level of a validated or rejected claim sends it back to
    ``none``: the mentor verdict applied to the old level.
    """
    skill = collection("skill").find_one({"_id": to_object_id(skill_id, "skill id"), "isActive": True})
    if not skill:
        raise NotFoundError("Skill")
    if source == "validated":
        raise WorkflowError("Source 'validated' is set by mentors only")

    claims = collection("userskill")
    existing = claims.find_one({"userId": str(user_id), "skillId": str(skill_id)})
    if existing is None:
        claim = UserSkill(user_id=str(user_id), skill_id=str(skill_id), level=level, source=source)
        try:
            new_id = create_document("userskill", claim)
        except DuplicateKeyError:
            raise WorkflowError("Skill already claimed", status_code=409)
        return claims.find_one({"_id": to_object_id(new_id)})

    update: Dict[str, Any] = {"level": level, "updatedAt": now()}
    if existing.get("level") != level and existing.get("validationStatus") in ("validated", "rejected"):
        update.update({
            "validationStatus": "none",
            "validatedBy": None,
            "validatedAt": None,
            "validationNote": None,
            "source": existing.get("originalSource") or "self",
        })
    claims.update_one({"_id": existing["_id"]}, {"$set": update})
    return {**existing, **update}


def list_user_skills(user_id: str) -> List[Dict[str, Any]]:
    claims = list(collection("userskill").find({"userId": str(user_id)}).sort("createdAt", -1))
    skill_ids = [to_object_id(c["skillId"]) for c in claims]
    skills = {str(s["_id"]): s for s in collection("skill").find({"_id": {"$in": skill_ids}}, {"name": 1, "domain": 1})}
    for claim in claims:
        skill = skills.get(claim["skillId"], {})
        claim["skillName"] = skill.get("name")
        claim["skillDomain"] = skill.get("domain")
    return claims


def remove_user_skill(user_id: str, user_skill_id: str) -> None:
    claim = collection("userskill").find_one({"_id": to_object_id(user_skill_id, "skill id")})
    if not claim:
        raise NotFoundError("User skill")
    if claim["userId"] != str(user_id):
        raise ForbiddenError("You can only remove your own skills")
    collection("userskill").delete_one({"_id": claim["_id"]})
