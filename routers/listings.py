"""Public listings: active jobs, internships, and target roles."""

import re
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

import roles
from database import paginate
from deps import PageParams, ok
from errors import NotFoundError

router = APIRouter(tags=["listings"])


def _public_filter(category: Optional[str], city: Optional[str], search: Optional[str]) -> Dict[str, Any]:
    filt: Dict[str, Any] = {"isActive": True, "status": "active"}
    if category:
        filt["category"] = category
    if city:
        filt["city"] = {"$regex": f"^{re.escape(city)}$", "$options": "i"}
    if search and search.strip():
        pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
        filt["$or"] = [{"title": pattern}, {"company": pattern}]
    return filt


@router.get("/jobs")
def list_jobs(
    category: Optional[str] = None,
    city: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(),
):
    docs, meta = paginate(
        "job", _public_filter(category, city, search), paging.page, paging.limit,
        sort=[("isFeatured", -1), ("createdAt", -1)],
    )
    return ok(docs, pagination=meta)


@router.get("/internships")
def list_internships(
    category: Optional[str] = None,
    city: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(),
):
    docs, meta = paginate(
        "internship", _public_filter(category, city, search), paging.page, paging.limit,
        sort=[("isFeatured", -1), ("createdAt", -1)],
    )
    return ok(docs, pagination=meta)


@router.get("/roles")
def list_roles(search: Optional[str] = None):
    return ok(roles.list_roles(search=search))


@router.get("/roles/{role_id}")
def get_role(role_id: str):
    role = roles.get_role(role_id)
    if not role.get("isActive", True):
        raise NotFoundError("Role")
    return ok(role)
