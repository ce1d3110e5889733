"""
Readiness calculation.

Pure functions: no database access. A user's readiness for a role is the
weighted share of benchmark points they hold:

    weighted = level_points * validation_multiplier * weight
    max      = 100 * weight
    percent  = sum(weighted) / sum(max) * 100   (one decimal)
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

LEVEL_POINTS: Dict[str, int] = {
    "none": 0,
    "beginner": 25,
    "intermediate": 50,
    "advanced": 75,
    "expert": 100,
}

LEVEL_RANK: Dict[str, int] = {
    "none": 0,
    "beginner": 1,
    "intermediate": 2,
    "advanced": 3,
    "expert": 4,
}

VALIDATION_MULTIPLIERS: Dict[str, float] = {
    "validated": 1.0,
    "self": 0.8,
    "course": 0.8,
    "project": 0.8,
    "resume": 0.7,
}


def validation_multiplier(source: Optional[str], validation_status: Optional[str]) -> float:
    # A mentor-validated skill earns full credit whatever its source
    if validation_status == "validated":
        return VALIDATION_MULTIPLIERS["validated"]
    if source in VALIDATION_MULTIPLIERS:
        return VALIDATION_MULTIPLIERS[source]
    return 0.0


def meets_level(user_level: str, required_level: str) -> bool:
    return LEVEL_RANK.get(user_level, 0) >= LEVEL_RANK.get(required_level, 0)


def calculate_readiness(
    benchmarks: List[Dict[str, Any]],
    user_skills: List[Dict[str, Any]],
    user_id: Optional[str] = None,
    role_id: Optional[str] = None,
    role_name: Optional[str] = None,
) -> Dict[str, Any]:
    """Score ``user_skills`` against a role's active ``benchmarks``.

    Both lists hold camelCase dicts as stored in Mongo (``skillId``,
    ``level``, ``source``, ``validationStatus`` / ``skillId``, ``weight``,
    ``importance``, ``requiredLevel``). Inactive benchmarks are skipped.
    """
    by_skill = {str(s.get("skillId")): s for s in user_skills}

    breakdown: List[Dict[str, Any]] = []
    total_score = 0.0
    max_score = 0
    required_met = 0
    required_total = 0
    matched = 0
    missing = 0

    for bench in benchmarks:
        if bench.get("isActive") is False:
            continue
        skill = by_skill.get(str(bench.get("skillId")))
        is_missing = skill is None
        user_level = (skill or {}).get("level") or "none"
        source = (skill or {}).get("source")
        status = (skill or {}).get("validationStatus")
        weight = int(bench.get("weight") or 0)
        required_level = bench.get("requiredLevel") or "none"

        points = LEVEL_POINTS.get(user_level, 0)
        multiplier = validation_multiplier(source, status)
        raw = points * multiplier
        weighted = raw * weight
        skill_max = 100 * weight
        meets = meets_level(user_level, required_level)

        if bench.get("importance", "required") == "required":
            required_total += 1
            if meets and not is_missing:
                required_met += 1

        if is_missing or user_level == "none":
            missing += 1
        else:
            matched += 1

        total_score += weighted
        max_score += skill_max

        breakdown.append({
            "skillId": str(bench.get("skillId")),
            "skillName": bench.get("skillName"),
            "importance": bench.get("importance", "required"),
            "weight": weight,
            "requiredLevel": required_level,
            "userLevel": user_level,
            "levelPoints": points,
            "validationMultiplier": multiplier,
            "rawScore": raw,
            "weightedScore": weighted,
            "maxPossibleScore": skill_max,
            "meetsRequirement": meets,
            "isMissing": is_missing,
            "source": source,
            "validationStatus": status,
        })

    percentage = round(total_score / max_score * 100, 1) if max_score > 0 else 0

    return {
        "userId": user_id,
        "roleId": role_id,
        "roleName": role_name,
        "totalScore": round(total_score, 1),
        "maxPossibleScore": max_score,
        "percentage": percentage,
        "hasAllRequired": required_met == required_total,
        "requiredSkillsMet": required_met,
        "requiredSkillsTotal": required_total,
        "totalBenchmarks": len(breakdown),
        "skillsMatched": matched,
        "skillsMissing": missing,
        "breakdown": breakdown,
        "calculatedAt": datetime.now(timezone.utc),
    }


def skill_gaps(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Benchmarks the user falls short on, most urgent first."""
    gaps = []
    for item in result["breakdown"]:
        if item["meetsRequirement"]:
            continue
        levels_needed = LEVEL_RANK[item["requiredLevel"]] - LEVEL_RANK[item["userLevel"]]
        bonus = 100 if item["importance"] == "required" else 0
        gaps.append({
            "skillId": item["skillId"],
            "skillName": item["skillName"],
            "currentLevel": item["userLevel"],
            "requiredLevel": item["requiredLevel"],
            "importance": item["importance"],
            "levelsNeeded": levels_needed,
            "priority": bonus + levels_needed * 10 + item["weight"],
        })
    gaps.sort(key=lambda g: g["priority"], reverse=True)
    return gaps


def benchmark_weight_total(benchmarks: List[Dict[str, Any]]) -> int:
    return sum(int(b.get("weight") or 0) for b in benchmarks if b.get("isActive", True))
