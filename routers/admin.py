"""Admin endpoints: users, listings, catalog, roles, mentors, tickets, email."""

import re
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from pymongo.errors import DuplicateKeyError

import mentor_applications
import roles
import skill_validation
import skills
import tickets
from bulk import apply_bulk_action, bulk_users
from database import collection, create_document, now, paginate, to_object_id
from deps import PageParams, ok, require_admin
from email_events import send_bulk_email, trigger_email_event
from errors import NotFoundError, WorkflowError
from logger import get_logger
from mentorship import assign_mentor, mentor_workload, suggest_mentor, users_by_mentor
from notifications import log_activity
from schemas import (
    Benchmark,
    Document,
    Importance,
    Internship,
    Job,
    ListingStatus,
    Role,
    Skill,
    SkillDomain,
    SkillLevel,
    TicketPriority,
    TicketStatus,
    User,
    UserRole,
)
from tables import RowSelection, SortState

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

USER_SORT_COLUMNS = ("name", "email", "role", "createdAt", "isActive")
LISTING_SORT_COLUMNS = ("title", "company", "city", "createdAt", "status")


# Payloads
class BulkRequest(Document):
    action: str
    ids: List[str] = Field(..., min_length=1)
    # Ids on the table page the selection was made from; limits the batch to that page
    visible_ids: Optional[List[str]] = None

    def selected_ids(self) -> List[str]:
        if self.visible_ids is None:
            return self.ids
        return RowSelection(visible=self.visible_ids, selected=set(self.ids)).ids()


class UserUpdate(Document):
    name: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class MentorAssignment(Document):
    mentor_id: Optional[str] = None


class ListingUpdate(Document):
    clearable: ClassVar[FrozenSet[str]] = frozenset({
        "category", "salary", "stipend", "duration", "experience", "description", "requirements", "contactEmail",
    })

    title: Optional[str] = None
    company: Optional[str] = None
    category: Optional[str] = None
    city: Optional[str] = None
    type: Optional[str] = None
    salary: Optional[str] = None
    stipend: Optional[str] = None
    duration: Optional[str] = None
    experience: Optional[str] = None
    description: Optional[str] = None
    requirements: Optional[str] = None
    contact_email: Optional[str] = None
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    status: Optional[ListingStatus] = None


class SkillUpdate(Document):
    clearable: ClassVar[FrozenSet[str]] = frozenset({"category", "description"})

    name: Optional[str] = Field(None, max_length=100)
    domain: Optional[SkillDomain] = None
    category: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    is_active: Optional[bool] = None


class RoleUpdate(Document):
    clearable: ClassVar[FrozenSet[str]] = frozenset({"description"})

    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class BenchmarkUpdate(Document):
    importance: Optional[Importance] = None
    weight: Optional[int] = Field(None, ge=1, le=100)
    required_level: Optional[SkillLevel] = None
    is_active: Optional[bool] = None


class BenchmarkList(Document):
    benchmarks: List[Benchmark]


class ApplicationRejection(Document):
    reason: str


class ValidationDecision(Document):
    note: Optional[str] = None


class TicketStatusUpdate(Document):
    status: TicketStatus


class TicketAssignment(Document):
    admin_id: Optional[str] = None


class AdminReply(Document):
    message: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = False


class BulkEmailRequest(Document):
    subject: str
    message: str
    recipients: Optional[str] = None
    csv_content: Optional[str] = None


def _changes(payload: Document) -> Dict[str, Any]:
    """Fields the client sent. An explicit null only clears fields listed in ``clearable``."""
    clearable = getattr(payload, "clearable", frozenset())
    return {
        key: value
        for key, value in payload.model_dump(by_alias=True, exclude_unset=True).items()
        if value is not None or key in clearable
    }


def _search_filter(search: Optional[str], fields: List[str]) -> Dict[str, Any]:
    if not search or not search.strip():
        return {}
    pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
    return {"$or": [{f: pattern} for f in fields]}


# Users
@router.get("/users")
def list_users(
    role: Optional[UserRole] = None,
    search: Optional[str] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort: Optional[str] = None,
    order: Optional[str] = None,
    paging: PageParams = Depends(),
    admin: Dict[str, Any] = Depends(require_admin),
):
    filt: Dict[str, Any] = _search_filter(search, ["name", "email"])
    if role:
        filt["role"] = role
    if is_active is not None:
        filt["isActive"] = is_active
    sort_state = SortState.from_query(sort, order)
    docs, meta = paginate("user", filt, paging.page, paging.limit, sort=sort_state.mongo_sort(USER_SORT_COLUMNS))
    return ok(docs, pagination=meta, sort=sort_state.as_dict())


@router.post("/users", status_code=201)
def create_user(user: User, admin: Dict[str, Any] = Depends(require_admin)):
    email = user.email.strip().lower()
    if collection("user").find_one({"email": email}):
        raise WorkflowError("A user with this email already exists", status_code=409)
    try:
        user_id = create_document("user", user.model_copy(update={"email": email}))
    except DuplicateKeyError:
        raise WorkflowError("A user with this email already exists", status_code=409)
    logger.info("User %s created by %s", user_id, admin["_id"])
    log_activity(user_id, "user_created", createdBy=str(admin["_id"]))
    trigger_email_event(user_id, "WELCOME_USER", {})
    return ok({"id": user_id}, message="User created")


@router.get("/users/{user_id}")
def get_user(user_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    user = collection("user").find_one({"_id": to_object_id(user_id, "user id")})
    if not user:
        raise NotFoundError("User")
    return ok(user)


@router.patch("/users/{user_id}")
def update_user(user_id: str, payload: UserUpdate, admin: Dict[str, Any] = Depends(require_admin)):
    changes = _changes(payload)
    if user_id == str(admin["_id"]) and (changes.get("isActive") is False or changes.get("role", "admin") != "admin"):
        raise WorkflowError("You cannot demote or deactivate your own account")
    _id = to_object_id(user_id, "user id")
    if changes.get("role") == "mentor":
        changes["mentorId"] = None
    result = collection("user").update_one({"_id": _id}, {"$set": {**changes, "updatedAt": now()}})
    if result.matched_count == 0:
        raise NotFoundError("User")
    if changes.get("role") and changes["role"] != "mentor":
        collection("user").update_many(
            {"mentorId": user_id, "role": "user"},
            {"$set": {"mentorId": None, "mentorAssignedAt": None, "updatedAt": now()}},
        )
    log_activity(user_id, "user_updated", updatedBy=str(admin["_id"]), fields=sorted(changes))
    return ok(collection("user").find_one({"_id": _id}))


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    result = bulk_users("delete", [user_id], str(admin["_id"]))
    outcome = result["results"][0]
    if not outcome["ok"]:
        if outcome["error"] == "Not found":
            raise NotFoundError("User")
        raise WorkflowError(outcome["error"])
    return ok(message="User deleted")


@router.post("/users/bulk")
def bulk_user_action(payload: BulkRequest, admin: Dict[str, Any] = Depends(require_admin)):
    try:
        result = bulk_users(payload.action, payload.selected_ids(), str(admin["_id"]))
    except ValueError as e:
        raise WorkflowError(str(e))
    return ok(result)


@router.put("/users/{user_id}/mentor")
def set_user_mentor(user_id: str, payload: MentorAssignment, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(assign_mentor(user_id, payload.mentor_id, str(admin["_id"])))


# Mentors
@router.get("/mentors/workload")
def get_mentor_workload(admin: Dict[str, Any] = Depends(require_admin)):
    return ok(mentor_workload())


@router.get("/mentors/suggest")
def get_suggested_mentor(admin: Dict[str, Any] = Depends(require_admin)):
    return ok(suggest_mentor())


@router.get("/mentors/{mentor_id}/users")
def get_mentor_users(mentor_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(users_by_mentor(mentor_id))


# Jobs and internships share one shape of endpoints
def _listing_routes(name: str, model: type) -> None:
    plural = f"{name}s"

    @router.get(f"/{plural}", name=f"admin_list_{plural}")
    def list_listings(
        status: Optional[ListingStatus] = None,
        is_active: Optional[bool] = Query(None, alias="isActive"),
        search: Optional[str] = None,
        sort: Optional[str] = None,
        order: Optional[str] = None,
        paging: PageParams = Depends(),
        admin: Dict[str, Any] = Depends(require_admin),
    ):
        filt = _search_filter(search, ["title", "company", "city"])
        if status:
            filt["status"] = status
        if is_active is not None:
            filt["isActive"] = is_active
        sort_state = SortState.from_query(sort, order)
        docs, meta = paginate(name, filt, paging.page, paging.limit, sort=sort_state.mongo_sort(LISTING_SORT_COLUMNS))
        return ok(docs, pagination=meta, sort=sort_state.as_dict())

    @router.post(f"/{plural}", status_code=201, name=f"admin_create_{name}")
    def create_listing(listing: model, admin: Dict[str, Any] = Depends(require_admin)):  # type: ignore[valid-type]
        listing_id = create_document(name, listing.model_copy(update={"created_by": str(admin["_id"])}))
        return ok({"id": listing_id})

    @router.patch(f"/{plural}/{{listing_id}}", name=f"admin_update_{name}")
    def update_listing(listing_id: str, payload: ListingUpdate, admin: Dict[str, Any] = Depends(require_admin)):
        _id = to_object_id(listing_id, f"{name} id")
        result = collection(name).update_one({"_id": _id}, {"$set": {**_changes(payload), "updatedAt": now()}})
        if result.matched_count == 0:
            raise NotFoundError(name.capitalize())
        return ok(collection(name).find_one({"_id": _id}))

    @router.delete(f"/{plural}/{{listing_id}}", name=f"admin_delete_{name}")
    def delete_listing(listing_id: str, admin: Dict[str, Any] = Depends(require_admin)):
        result = collection(name).delete_one({"_id": to_object_id(listing_id, f"{name} id")})
        if result.deleted_count == 0:
            raise NotFoundError(name.capitalize())
        return ok(message=f"{name.capitalize()} deleted")

    @router.post(f"/{plural}/bulk", name=f"admin_bulk_{plural}")
    def bulk_listing_action(payload: BulkRequest, admin: Dict[str, Any] = Depends(require_admin)):
        try:
            result = apply_bulk_action(name, payload.action, payload.selected_ids(), str(admin["_id"]))
        except ValueError as e:
            raise WorkflowError(str(e))
        return ok(result)


_listing_routes("job", Job)
_listing_routes("internship", Internship)


# Skill catalog
@router.get("/skills")
def list_catalog_skills(
    domain: Optional[SkillDomain] = None,
    search: Optional[str] = None,
    include_inactive: bool = Query(False, alias="includeInactive"),
    admin: Dict[str, Any] = Depends(require_admin),
):
    return ok(skills.list_skills(domain, search, include_inactive))


@router.post("/skills", status_code=201)
def create_catalog_skill(skill: Skill, admin: Dict[str, Any] = Depends(require_admin)):
    return ok({"id": skills.create_skill(skill)})


@router.patch("/skills/{skill_id}")
def update_catalog_skill(skill_id: str, payload: SkillUpdate, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(skills.update_skill(skill_id, _changes(payload)))


@router.delete("/skills/{skill_id}")
def deactivate_catalog_skill(skill_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    skills.deactivate_skill(skill_id)
    return ok(message="Skill deactivated")


# Roles and benchmarks
@router.get("/roles")
def list_all_roles(search: Optional[str] = None, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(roles.list_roles(include_inactive=True, search=search))


@router.post("/roles", status_code=201)
def create_target_role(role: Role, admin: Dict[str, Any] = Depends(require_admin)):
    return ok({"id": roles.create_role(role)})


@router.get("/roles/{role_id}")
def get_target_role(role_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(roles.get_role(role_id))


@router.patch("/roles/{role_id}")
def update_target_role(role_id: str, payload: RoleUpdate, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(roles.update_role(role_id, _changes(payload)))


@router.put("/roles/{role_id}/benchmarks")
def replace_role_benchmarks(role_id: str, payload: BenchmarkList, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(roles.replace_benchmarks(role_id, payload.benchmarks))


@router.post("/roles/{role_id}/benchmarks", status_code=201)
def add_role_benchmark(role_id: str, benchmark: Benchmark, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(roles.add_benchmark(role_id, benchmark))


@router.patch("/roles/{role_id}/benchmarks/{benchmark_id}")
def update_role_benchmark(
    role_id: str, benchmark_id: str, payload: BenchmarkUpdate, admin: Dict[str, Any] = Depends(require_admin)
):
    return ok(roles.update_benchmark(role_id, benchmark_id, _changes(payload)))


@router.delete("/roles/{role_id}/benchmarks/{benchmark_id}")
def remove_role_benchmark(role_id: str, benchmark_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(roles.remove_benchmark(role_id, benchmark_id))


# Skill validations for students without a mentor
@router.get("/validations/pending")
def admin_pending_validations(
    domain: Optional[SkillDomain] = None,
    level: Optional[SkillLevel] = None,
    source: Optional[str] = None,
    search: Optional[str] = None,
    paging: PageParams = Depends(),
    admin: Dict[str, Any] = Depends(require_admin),
):
    rows, meta = skill_validation.list_pending(admin, domain, level, source, search, paging.page, paging.limit)
    return ok(rows, pagination=meta)


@router.post("/validations/{user_skill_id}/approve")
def admin_approve_skill(user_skill_id: str, payload: ValidationDecision, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(skill_validation.approve(user_skill_id, admin, payload.note), message="Skill validated")


@router.post("/validations/{user_skill_id}/reject")
def admin_reject_skill(user_skill_id: str, payload: ValidationDecision, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(skill_validation.reject(user_skill_id, admin, payload.note), message="Skill rejected")


# Mentor applications
@router.get("/mentor-applications")
def list_mentor_applications(
    status: Optional[str] = Query("submitted", description="Empty string lists every status"),
    admin: Dict[str, Any] = Depends(require_admin),
):
    return ok(mentor_applications.list_applications(status or None))


@router.get("/mentor-applications/{application_id}")
def get_mentor_application(application_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(mentor_applications.get_application(application_id))


@router.post("/mentor-applications/{application_id}/approve")
def approve_mentor_application(application_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(mentor_applications.approve(application_id, admin), message="Application approved")


@router.post("/mentor-applications/{application_id}/reject")
def reject_mentor_application(
    application_id: str, payload: ApplicationRejection, admin: Dict[str, Any] = Depends(require_admin)
):
    return ok(mentor_applications.reject(application_id, admin, payload.reason), message="Application rejected")


# Tickets
@router.get("/tickets")
def list_tickets(
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
    assigned_to: Optional[str] = Query(None, alias="assignedTo"),
    paging: PageParams = Depends(),
    admin: Dict[str, Any] = Depends(require_admin),
):
    docs, meta = tickets.list_all_tickets(status, priority, assigned_to, paging.page, paging.limit)
    return ok(docs, pagination=meta)


@router.get("/tickets/{ticket_id}")
def get_ticket(ticket_id: str, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(tickets.ticket_detail(ticket_id, admin))


@router.post("/tickets/{ticket_id}/reply")
def reply_to_ticket(ticket_id: str, payload: AdminReply, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(tickets.reply(ticket_id, admin, payload.message, internal=payload.is_internal))


@router.patch("/tickets/{ticket_id}/status")
def set_ticket_status(ticket_id: str, payload: TicketStatusUpdate, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(tickets.set_status(ticket_id, payload.status))


@router.patch("/tickets/{ticket_id}/assign")
def assign_ticket(ticket_id: str, payload: TicketAssignment, admin: Dict[str, Any] = Depends(require_admin)):
    return ok(tickets.assign(ticket_id, payload.admin_id))


# Email
@router.post("/email/bulk")
def bulk_email(payload: BulkEmailRequest, admin: Dict[str, Any] = Depends(require_admin)):
    result = send_bulk_email(
        payload.subject, payload.message, payload.recipients, payload.csv_content, sent_by=str(admin["_id"])
    )
    return ok(result, message=f"Email queued for {result['queued']} recipients")
