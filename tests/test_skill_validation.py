"""Tests for the skill validation workflow."""

import pytest

import skill_validation
from bulk import bulk_users
from errors import WorkflowError
from mentorship import get_validation_recipients


@pytest.fixture
def people(make_user):
    admin = make_user("Admin", role="admin")
    mentor = make_user("Meera", role="mentor")
    other_mentor = make_user("Omar", role="mentor")
    student = make_user("Asha", mentor=mentor)
    loner = make_user("Ravi")
    return {"admin": admin, "mentor": mentor, "other_mentor": other_mentor, "student": student, "loner": loner}


# ============================================================================
# Routing
# ============================================================================


class TestRouting:
    def test_assigned_active_mentor(self, people):
        route = get_validation_recipients(str(people["student"]["_id"]))
        assert route["recipientType"] == "mentor"
        assert route["recipientIds"] == [str(people["mentor"]["_id"])]

    def test_no_mentor_goes_to_admins(self, people):
        route = get_validation_recipients(str(people["loner"]["_id"]))
        assert route["recipientType"] == "admin"
        assert route["recipientIds"] == [str(people["admin"]["_id"])]
        assert route["reason"] == "No mentor assigned"

    def test_inactive_mentor_goes_to_admins(self, people, mongo):
        mongo["user"].update_one({"_id": people["mentor"]["_id"]}, {"$set": {"isActive": False}})
        route = get_validation_recipients(str(people["student"]["_id"]))
        assert route["recipientType"] == "admin"
        assert route["reason"] == "Assigned mentor is inactive"

    def test_unknown_user_goes_to_admins(self, people):
        route = get_validation_recipients("0123456789abcdef01234567")
        assert route["recipientType"] == "admin"


# ============================================================================
# Request
# ============================================================================


class TestRequestValidation:
    def test_moves_to_pending_and_notifies_mentor(self, people, make_claim, mongo):
        item = make_claim(people["student"])
        result = skill_validation.request_validation(str(item["_id"]), people["student"])

        assert result["routedTo"] == "mentor"
        assert mongo["userskill"].find_one({"_id": item["_id"]})["validationStatus"] == "pending"
        note = mongo["notification"].find_one({"userId": str(people["mentor"]["_id"])})
        assert note["type"] == "mentor_validation"
        assert "Python" in note["message"]

    def test_only_owner_can_request(self, people, make_claim):
        item = make_claim(people["student"])
        with pytest.raises(WorkflowError) as exc:
            skill_validation.request_validation(str(item["_id"]), people["loner"])
        assert exc.value.status_code == 403

    def test_already_pending(self, people, make_claim):
        item = make_claim(people["student"], status="pending")
        with pytest.raises(WorkflowError, match="already pending"):
            skill_validation.request_validation(str(item["_id"]), people["student"])


# ============================================================================
# Queue
# ============================================================================


class TestQueue:
    def test_mentor_sees_only_assigned_students(self, people, make_claim):
        make_claim(people["student"], "Python")
        make_claim(people["loner"], "Go")

        rows, meta = skill_validation.list_pending(people["mentor"])
        assert [r["skillName"] for r in rows] == ["Python"]
        assert meta["total"] == 1

    def test_admin_queue_holds_students_without_mentor(self, people, make_claim):
        make_claim(people["student"], "Python")
        make_claim(people["loner"], "Go")

        rows, _ = skill_validation.list_pending(people["admin"])
        assert [r["userName"] for r in rows] == ["Ravi"]

    def test_deactivated_mentor_hands_queue_to_admins(self, people, make_claim):
        item = make_claim(people["student"], "Python")
        result = bulk_users("deactivate", [str(people["mentor"]["_id"])], str(people["admin"]["_id"]))
        assert result["succeeded"] == 1

        requested = skill_validation.request_validation(str(item["_id"]), people["student"])
        assert requested["routedTo"] == "admin"

        rows, meta = skill_validation.list_pending(people["admin"])
        assert [r["userName"] for r in rows] == ["Asha"]
        assert meta["total"] == 1

    def test_validated_claims_are_not_pending(self, people, make_claim):
        make_claim(people["student"], source="validated", status="validated")
        rows, _ = skill_validation.list_pending(people["mentor"])
        assert rows == []

    def test_filters(self, people, make_claim):
        make_claim(people["student"], "Python", level="advanced", domain="languages")
        make_claim(people["student"], "Docker", level="beginner", domain="tools", source="project")

        assert len(skill_validation.list_pending(people["mentor"], domain="tools")[0]) == 1
        assert len(skill_validation.list_pending(people["mentor"], level="advanced")[0]) == 1
        assert len(skill_validation.list_pending(people["mentor"], source="project")[0]) == 1
        assert len(skill_validation.list_pending(people["mentor"], search="dock")[0]) == 1
        assert len(skill_validation.list_pending(people["mentor"], search="asha")[0]) == 2

    def test_pagination(self, people, make_claim):
        for name in ("A", "B", "C"):
            make_claim(people["student"], name)
        rows, meta = skill_validation.list_pending(people["mentor"], page=2, limit=2)
        assert len(rows) == 1
        assert meta == {"currentPage": 2, "totalPages": 2, "total": 3, "limit": 2}

    def test_mentor_without_students(self, people):
        rows, meta = skill_validation.list_pending(people["other_mentor"])
        assert rows == []
        assert meta["total"] == 0


# ============================================================================
# Approve / reject
# ============================================================================


class TestResolve:
    def test_approve_marks_validated(self, people, make_claim, mongo):
        item = make_claim(people["student"], source="resume", status="pending")
        skill_validation.approve(str(item["_id"]), people["mentor"], "Solid portfolio")

        stored = mongo["userskill"].find_one({"_id": item["_id"]})
        assert stored["validationStatus"] == "validated"
        assert stored["source"] == "validated"
        assert stored["originalSource"] == "resume"
        assert stored["validatedBy"] == str(people["mentor"]["_id"])

        types = {n["type"] for n in mongo["notification"].find({"userId": str(people["student"]["_id"])})}
        assert types == {"mentor_validation", "readiness_outdated"}
        assert mongo["emailoutbox"].find_one({"event": "MENTOR_SKILL_VALIDATED"})["to"] == "asha@example.com"

    def test_reject_requires_note(self, people, make_claim, mongo):
        item = make_claim(people["student"], status="pending")
        with pytest.raises(WorkflowError) as exc:
            skill_validation.reject(str(item["_id"]), people["mentor"], "too short")
        assert exc.value.status_code == 422
        assert mongo["userskill"].find_one({"_id": item["_id"]})["validationStatus"] == "pending"

    def test_reject_note_upper_bound(self, people, make_claim):
        item = make_claim(people["student"], status="pending")
        with pytest.raises(WorkflowError):
            skill_validation.reject(str(item["_id"]), people["mentor"], "x" * 501)

    def test_reject_stores_note(self, people, make_claim, mongo):
        item = make_claim(people["student"], status="pending")
        skill_validation.reject(str(item["_id"]), people["mentor"], "Add a project that uses it")

        stored = mongo["userskill"].find_one({"_id": item["_id"]})
        assert stored["validationStatus"] == "rejected"
        assert stored["validationNote"] == "Add a project that uses it"
        assert stored["source"] == "self"

    def test_unassigned_mentor_forbidden(self, people, make_claim):
        item = make_claim(people["student"], status="pending")
        with pytest.raises(WorkflowError) as exc:
            skill_validation.approve(str(item["_id"]), people["other_mentor"])
        assert exc.value.status_code == 403

    def test_admin_can_review_anyone(self, people, make_claim):
        item = make_claim(people["student"], status="pending")
        assert skill_validation.approve(str(item["_id"]), people["admin"])["validationStatus"] == "validated"

    def test_cannot_review_own_skill(self, people, make_claim):
        item = make_claim(people["admin"], status="pending")
        with pytest.raises(WorkflowError, match="own skills"):
            skill_validation.approve(str(item["_id"]), people["admin"])

    def test_second_decision_refused(self, people, make_claim):
        item = make_claim(people["student"], status="pending")
        skill_validation.approve(str(item["_id"]), people["mentor"])
        with pytest.raises(WorkflowError, match="already validated"):
            skill_validation.reject(str(item["_id"]), people["admin"], "Changed my mind about it")


def test_stats_and_history(people, make_claim):
    first = make_claim(people["student"], "Python", status="pending")
    second = make_claim(people["student"], "SQL", status="pending")
    make_claim(people["student"], "Go", status="pending")
    skill_validation.approve(str(first["_id"]), people["mentor"])
    skill_validation.reject(str(second["_id"]), people["mentor"], "Needs more practice")

    assert skill_validation.stats(people["mentor"]) == {
        "pending": 1, "validated": 1, "rejected": 1, "total": 2, "assignedStudents": 1,
    }
    items, meta = skill_validation.history(people["mentor"], 1, 20)
    assert meta["total"] == 2
    assert {i["skillName"] for i in items} == {"Python", "SQL"}


def test_grouped_inbox(people, make_claim):
    make_claim(people["student"], "Python", status="pending")
    make_claim(people["student"], "SQL", status="pending")
    make_claim(people["student"], "Go", status="none")

    inbox = skill_validation.grouped_inbox(people["mentor"])
    assert len(inbox) == 1
    assert inbox[0]["pendingCount"] == 2
    assert inbox[0]["targetRole"] == "Not Set"
