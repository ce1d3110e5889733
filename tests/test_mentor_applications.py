"""Tests for the mentor application workflow."""

import pytest

import mentor_applications
from errors import WorkflowError
from schemas import Intent, MentorApplicationDraft

MOTIVATION = "I have led study groups for three years and want to help students plan their careers."


def draft(motivation=MOTIVATION, **extra):
    return MentorApplicationDraft(intent=Intent(motivation=motivation), **extra)


@pytest.fixture
def student(make_user):
    make_user("Admin", role="admin")
    return make_user("Asha")


class TestDraft:
    def test_save_creates_draft(self, student, mongo):
        app = mentor_applications.save_draft(student, draft("short"))
        assert app["status"] == "draft"
        assert app["consentAccepted"] is False
        assert app["intent"]["motivation"] == "short"

    def test_save_is_refused_while_submitted(self, student):
        mentor_applications.submit(student, draft(), consent_accepted=True)
        with pytest.raises(WorkflowError, match="under review"):
            mentor_applications.save_draft(student, draft())

    def test_only_students_apply(self, make_user):
        mentor = make_user("Meera", role="mentor")
        with pytest.raises(WorkflowError) as exc:
            mentor_applications.save_draft(mentor, draft())
        assert exc.value.status_code == 403


class TestSubmit:
    def test_short_motivation_refused(self, student, mongo):
        mentor_applications.save_draft(student, draft("Too short to count."))
        mentor_applications.record_consent(student, True)

        with pytest.raises(WorkflowError) as exc:
            mentor_applications.submit(student)

        assert exc.value.status_code == 422
        assert mongo["mentorapplication"].find_one({})["status"] == "draft"

    def test_whitespace_does_not_count_toward_motivation(self, student):
        padded = "x" * 40 + " " * 30
        with pytest.raises(WorkflowError):
            mentor_applications.submit(student, draft(padded), consent_accepted=True)

    def test_consent_required(self, student):
        mentor_applications.save_draft(student, draft())
        with pytest.raises(WorkflowError, match="consent"):
            mentor_applications.submit(student)

    def test_failed_submit_does_not_persist_consent(self, student, mongo):
        mentor_applications.save_draft(student, draft("short"))

        with pytest.raises(WorkflowError):
            mentor_applications.submit(student, draft("still short"), consent_accepted=True)

        stored = mongo["mentorapplication"].find_one({})
        assert stored["consentAccepted"] is False
        assert stored["intent"]["motivation"] == "short"

    def test_submit_with_draft_and_consent_in_one_call(self, student, mongo):
        app = mentor_applications.submit(student, draft(), consent_accepted=True)

        assert app["status"] == "submitted"
        assert app["consentAccepted"] is True
        assert app["consentVersion"] == "v1.0"
        assert app["submittedAt"] is not None
        assert mongo["mentorapplication"].count_documents({}) == 1
        admin_note = mongo["notification"].find_one({"type": "mentor_application"})
        assert admin_note is not None

    def test_double_submit_refused(self, student):
        mentor_applications.submit(student, draft(), consent_accepted=True)
        with pytest.raises(WorkflowError, match="already submitted"):
            mentor_applications.submit(student)

    def test_server_owned_fields_are_ignored(self, student):
        payload = MentorApplicationDraft.model_validate({"intent": {"motivation": MOTIVATION}, "status": "approved"})
        app = mentor_applications.save_draft(student, payload)
        assert app["status"] == "draft"


class TestReview:
    def test_approve_promotes_user(self, student, make_user, mongo):
        admin = mongo["user"].find_one({"role": "admin"})
        mentor = make_user("Meera", role="mentor")
        mongo["user"].update_one({"_id": student["_id"]}, {"$set": {"mentorId": str(mentor["_id"])}})
        app = mentor_applications.submit(student, draft(), consent_accepted=True)

        mentor_applications.approve(str(app["_id"]), admin)

        user = mongo["user"].find_one({"_id": student["_id"]})
        assert user["role"] == "mentor"
        assert user["mentorId"] is None
        assert mongo["mentorapplication"].find_one({})["status"] == "approved"

    def test_only_submitted_can_be_reviewed(self, student, mongo):
        admin = mongo["user"].find_one({"role": "admin"})
        app = mentor_applications.save_draft(student, draft())
        with pytest.raises(WorkflowError, match="Only submitted"):
            mentor_applications.approve(str(app["_id"]), admin)

    def test_rejected_application_can_be_edited_again(self, student, mongo):
        admin = mongo["user"].find_one({"role": "admin"})
        app = mentor_applications.submit(student, draft(), consent_accepted=True)
        mentor_applications.reject(str(app["_id"]), admin, "Add links to your work")

        assert mongo["mentorapplication"].find_one({})["rejectionReason"] == "Add links to your work"
        assert mentor_applications.save_draft(student, draft())["status"] == "draft"

    def test_reject_requires_reason(self, student, mongo):
        admin = mongo["user"].find_one({"role": "admin"})
        app = mentor_applications.submit(student, draft(), consent_accepted=True)
        with pytest.raises(WorkflowError):
            mentor_applications.reject(str(app["_id"]), admin, "  ")

    def test_list_includes_applicant(self, student, mongo):
        mentor_applications.submit(student, draft(), consent_accepted=True)
        apps = mentor_applications.list_applications()
        assert len(apps) == 1
        assert apps[0]["user"]["name"] == "Asha"


def test_withdraw(student, mongo):
    mentor_applications.save_draft(student, draft())
    mentor_applications.withdraw(student)
    assert mongo["mentorapplication"].count_documents({}) == 0
