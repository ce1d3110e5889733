"""Tests for mentor assignment and workload."""

import pytest

from errors import WorkflowError
from mentorship import assign_mentor, mentor_workload, suggest_mentor, users_by_mentor


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role="admin")


def test_assign_change_unassign(admin, make_user, mongo):
    student = make_user("Asha")
    first = make_user("Meera", role="mentor")
    second = make_user("Omar", role="mentor")
    admin_id = str(admin["_id"])

    assert assign_mentor(str(student["_id"]), str(first["_id"]), admin_id)["previousMentorId"] is None
    changed = assign_mentor(str(student["_id"]), str(second["_id"]), admin_id)
    assert changed["previousMentorId"] == str(first["_id"])
    assert mongo["user"].find_one({"_id": student["_id"]})["mentorId"] == str(second["_id"])

    assign_mentor(str(student["_id"]), None, admin_id)
    assert mongo["user"].find_one({"_id": student["_id"]})["mentorId"] is None
    actions = [a["action"] for a in mongo["activitylog"].find({"userId": str(student["_id"])})]
    assert actions == ["mentor_assigned", "mentor_changed", "mentor_unassigned"]


@pytest.mark.parametrize("case,code", [
    ("same", "ALREADY_ASSIGNED"),
    ("not_mentor", "INVALID_MENTOR_ROLE"),
    ("inactive", "MENTOR_INACTIVE"),
    ("not_user", "INVALID_USER_ROLE"),
])
def test_assignment_errors(admin, make_user, case, code):
    mentor = make_user("Meera", role="mentor")
    student = make_user("Asha", mentor=mentor)
    target, mentor_id = str(student["_id"]), str(mentor["_id"])
    if case == "not_mentor":
        mentor_id = str(make_user("Ravi")["_id"])
    elif case == "inactive":
        mentor_id = str(make_user("Omar", role="mentor", is_active=False)["_id"])
    elif case == "not_user":
        target = str(make_user("Zoya", role="mentor")["_id"])

    with pytest.raises(WorkflowError) as exc:
        assign_mentor(target, mentor_id, str(admin["_id"]))
    assert exc.value.code == code


def test_workload_and_suggestion(make_user, make_claim):
    busy = make_user("Meera", role="mentor")
    light = make_user("Omar", role="mentor")
    make_user("Idle", role="mentor", is_active=False)
    for name in ("A", "B"):
        make_claim(make_user(name, mentor=busy))
    make_user("C", mentor=light)

    workload = mentor_workload()
    assert [w["mentorName"] for w in workload][:2] == ["Meera", "Omar"]
    assert workload[0]["assignedUsersCount"] == 2
    assert workload[0]["pendingValidationsCount"] == 2

    suggestion = suggest_mentor()
    assert suggestion["mentorName"] == "Omar"

    students = users_by_mentor(str(busy["_id"]))
    assert {s["name"] for s in students} == {"A", "B"}
    assert all(s["pendingValidations"] == 1 for s in students)


def test_no_active_mentors(make_user):
    make_user("Idle", role="mentor", is_active=False)
    assert suggest_mentor() is None
