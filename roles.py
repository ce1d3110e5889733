"""Target roles, their benchmark skills, and user readiness."""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId

from config import get_settings
from database import collection, create_document, now, to_object_id
from email_events import trigger_email_event
from errors import NotFoundError, WorkflowError
from logger import get_logger, log_with_context
from notifications import create_or_update
from readiness import benchmark_weight_total, calculate_readiness, skill_gaps
from schemas import Benchmark, ReadinessSnapshot, Role

logger = get_logger(__name__)

MAJOR_IMPROVEMENT_POINTS = 15


def check_weight_total(benchmarks: List[Dict[str, Any]]) -> None:
    limit = get_settings().MAX_BENCHMARK_WEIGHT_TOTAL
    total = benchmark_weight_total(benchmarks)
    if total > limit:
        raise WorkflowError(f"Total benchmark weight is {total}; it cannot exceed {limit}", status_code=422)


def get_role(role_id: str) -> Dict[str, Any]:
    role = collection("role").find_one({"_id": to_object_id(role_id, "role id")})
    if not role:
        raise NotFoundError("Role")
    return role


def create_role(role: Role) -> str:
    doc = role.model_dump(by_alias=True)
    for bench in doc["benchmarks"]:
        bench["_id"] = ObjectId()
    check_weight_total(doc["benchmarks"])
    return create_document("role", doc)


def update_role(role_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    role = get_role(role_id)
    changes.pop("benchmarks", None)
    collection("role").update_one({"_id": role["_id"]}, {"$set": {**changes, "updatedAt": now()}})
    return get_role(role_id)


def list_roles(include_inactive: bool = False, search: Optional[str] = None) -> List[Dict[str, Any]]:
    filt: Dict[str, Any] = {} if include_inactive else {"isActive": True}
    roles = list(collection("role").find(filt).sort("name", 1))
    if search:
        needle = search.lower()
        roles = [r for r in roles if needle in r.get("name", "").lower()]
    return roles


def _save_benchmarks(role: Dict[str, Any], benchmarks: List[Dict[str, Any]]) -> Dict[str, Any]:
    check_weight_total(benchmarks)
    collection("role").update_one({"_id": role["_id"]}, {"$set": {"benchmarks": benchmarks, "updatedAt": now()}})
    return {**role, "benchmarks": benchmarks}


def add_benchmark(role_id: str, benchmark: Benchmark) -> Dict[str, Any]:
    role = get_role(role_id)
    benchmarks = list(role.get("benchmarks") or [])
    if any(b.get("skillId") == benchmark.skill_id for b in benchmarks):
        raise WorkflowError("Skill is already a benchmark for this role", status_code=409)
    benchmarks.append({**benchmark.model_dump(by_alias=True), "_id": ObjectId()})
    return _save_benchmarks(role, benchmarks)


def update_benchmark(role_id: str, benchmark_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    role = get_role(role_id)
    target = to_object_id(benchmark_id, "benchmark id")
    benchmarks = list(role.get("benchmarks") or [])
    for i, bench in enumerate(benchmarks):
        if bench.get("_id") == target:
            merged = Benchmark.model_validate({**bench, **changes}).model_dump(by_alias=True)
            benchmarks[i] = {**merged, "_id": target}
            return _save_benchmarks(role, benchmarks)
    raise NotFoundError("Benchmark")


def remove_benchmark(role_id: str, benchmark_id: str) -> Dict[str, Any]:
    role = get_role(role_id)
    target = to_object_id(benchmark_id, "benchmark id")
    benchmarks = [b for b in role.get("benchmarks") or [] if b.get("_id") != target]
    if len(benchmarks) == len(role.get("benchmarks") or []):
        raise NotFoundError("Benchmark")
    return _save_benchmarks(role, benchmarks)


def replace_benchmarks(role_id: str, benchmarks: List[Benchmark]) -> Dict[str, Any]:
    """Bulk benchmark editor save: all or nothing."""
    role = get_role(role_id)
    docs = [{**b.model_dump(by_alias=True), "_id": ObjectId()} for b in benchmarks]
    return _save_benchmarks(role, docs)


def set_target_role(user: Dict[str, Any], role_id: str) -> Dict[str, Any]:
    role = get_role(role_id)
    if not role.get("isActive", True):
        raise WorkflowError("Role is not active")
    collection("user").update_one(
        {"_id": user["_id"]},
        {"$set": {"profile.targetRoleId": str(role["_id"]), "updatedAt": now()}},
    )
    create_or_update(
        user["_id"], "role_changed",
        title="Target Role Updated",
        message=f"You're now preparing for {role['name']}. Recalculate your readiness.",
        action_url="/dashboard/readiness",
        metadata={"roleId": str(role["_id"]), "roleName": role["name"]},
    )
    trigger_email_event(str(user["_id"]), "ROLE_SELECTED", {"roleName": role["name"], "roleId": str(role["_id"])})
    return role


def calculate_for_user(user: Dict[str, Any], role_id: Optional[str] = None) -> Dict[str, Any]:
    """Score the user against ``role_id`` (or their target role) and keep a snapshot."""
    role_id = role_id or (user.get("profile") or {}).get("targetRoleId")
    if not role_id:
        raise WorkflowError("Select a target role first")
    role = get_role(role_id)
    user_id = str(user["_id"])
    claims = list(collection("userskill").find({"userId": user_id}))

    result = calculate_readiness(role.get("benchmarks") or [], claims, user_id, str(role["_id"]), role.get("name"))
    result["skillGaps"] = skill_gaps(result)

    snapshots = collection("readinesssnapshot")
    previous = snapshots.find_one({"userId": user_id, "roleId": str(role["_id"])}, sort=[("createdAt", -1)])
    create_document(ReadinessSnapshot, ReadinessSnapshot(
        user_id=user_id,
        role_id=str(role["_id"]),
        percentage=result["percentage"],
        has_all_required=result["hasAllRequired"],
    ))

    meta = {"roleName": role.get("name"), "roleId": str(role["_id"])}
    if previous is None:
        trigger_email_event(user_id, "READINESS_FIRST", {**meta, "score": result["percentage"]})
    elif result["percentage"] - previous["percentage"] >= MAJOR_IMPROVEMENT_POINTS:
        trigger_email_event(user_id, "READINESS_MAJOR_IMPROVEMENT", {
            **meta, "oldScore": previous["percentage"], "newScore": result["percentage"],
        })

    log_with_context(logger, logging.INFO, "Readiness calculated", user_id=user_id,
                     role_id=str(role["_id"]), percentage=result["percentage"])
    return result


def readiness_history(user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    return list(collection("readinesssnapshot").find({"userId": str(user_id)}).sort("createdAt", -1).limit(limit))
