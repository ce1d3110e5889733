"""Tests for support tickets."""

import pytest

import tickets
from errors import WorkflowError


@pytest.fixture
def admin(make_user):
    return make_user("Admin", role="admin")


@pytest.fixture
def student(make_user):
    return make_user("Asha")


def open_ticket(user):
    return tickets.create_ticket(user, "Cannot upload resume", "bug", "high", "The upload spins forever.")


class TestReplyStatus:
    @pytest.mark.parametrize("current,role,expected", [
        ("open", "admin", "waiting_user"),
        ("in_progress", "admin", "waiting_user"),
        ("waiting_user", "admin", "waiting_user"),
        ("resolved", "admin", "resolved"),
        ("waiting_user", "user", "open"),
        ("resolved", "mentor", "open"),
        ("in_progress", "user", "in_progress"),
        ("open", "user", "open"),
    ])
    def test_transitions(self, current, role, expected):
        assert tickets.reply_status(current, role) == expected

    def test_closed_takes_no_replies(self):
        with pytest.raises(WorkflowError, match="closed"):
            tickets.reply_status("closed", "admin")


def test_ticket_numbers_increase(student):
    first = open_ticket(student)
    second = open_ticket(student)
    assert first["ticketNumber"] == "RR-1000"
    assert second["ticketNumber"] == "RR-1001"


def test_create_stores_first_message(student, mongo):
    ticket = open_ticket(student)
    assert ticket["status"] == "open"
    assert mongo["ticketmessage"].count_documents({"ticketId": str(ticket["_id"])}) == 1


def test_admins_cannot_open_tickets(admin):
    with pytest.raises(WorkflowError) as exc:
        open_ticket(admin)
    assert exc.value.status_code == 403


def test_conversation_round_trip(student, admin, mongo):
    ticket = open_ticket(student)
    ticket_id = str(ticket["_id"])

    assert tickets.reply(ticket_id, admin, "Which browser?")["status"] == "waiting_user"
    assert mongo["notification"].find_one({"userId": str(student["_id"]), "type": "ticket_update"}) is not None

    assert tickets.reply(ticket_id, student, "Firefox")["status"] == "open"

    tickets.set_status(ticket_id, "closed")
    with pytest.raises(WorkflowError):
        tickets.reply(ticket_id, student, "Still broken")


def test_internal_notes_hidden_from_owner(student, admin):
    ticket_id = str(open_ticket(student)["_id"])
    tickets.reply(ticket_id, admin, "Likely the CDN again", internal=True)

    owner_view = tickets.ticket_detail(ticket_id, student)
    admin_view = tickets.ticket_detail(ticket_id, admin)
    assert len(owner_view["messages"]) == 1
    assert len(admin_view["messages"]) == 2
    # Internal notes leave the status alone
    assert owner_view["status"] == "open"


def test_other_users_cannot_read(student, make_user):
    ticket_id = str(open_ticket(student)["_id"])
    with pytest.raises(WorkflowError) as exc:
        tickets.ticket_detail(ticket_id, make_user("Ravi"))
    assert exc.value.status_code == 403


def test_assign_moves_open_to_in_progress(student, admin):
    ticket_id = str(open_ticket(student)["_id"])
    assigned = tickets.assign(ticket_id, str(admin["_id"]))
    assert assigned["status"] == "in_progress"
    assert assigned["assignedTo"] == str(admin["_id"])


def test_assign_to_non_admin_refused(student):
    ticket_id = str(open_ticket(student)["_id"])
    with pytest.raises(WorkflowError):
        tickets.assign(ticket_id, str(student["_id"]))


def test_list_filters(student, admin):
    first = open_ticket(student)
    open_ticket(student)
    tickets.set_status(str(first["_id"]), "resolved")

    mine, meta = tickets.list_my_tickets(student, None, 1, 20)
    assert meta["total"] == 2
    resolved, _ = tickets.list_all_tickets("resolved", None, None, 1, 20)
    assert [t["ticketNumber"] for t in resolved] == [first["ticketNumber"]]
