"""Support tickets.

Tickets are never deleted. A reply moves the ticket status:
an admin reply to an open/in-progress ticket waits on the user; a user
or mentor reply reopens a waiting or resolved ticket. Closed tickets take
no replies.
"""

from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument

from database import collection, create_document, now, paginate, to_object_id
from errors import ForbiddenError, NotFoundError, WorkflowError
from logger import get_logger
from notifications import create_or_update
from schemas import Ticket, TicketMessage

logger = get_logger(__name__)

TICKET_PREFIX = "RR"
FIRST_TICKET_NUMBER = 1000


def next_ticket_number() -> str:
    counter = collection("counter").find_one_and_update(
        {"_id": "ticket"},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return f"{TICKET_PREFIX}-{FIRST_TICKET_NUMBER + counter['seq'] - 1}"


def reply_status(current: str, sender_role: str) -> str:
    if current == "closed":
        raise WorkflowError("Cannot reply to closed ticket")
    if sender_role == "admin":
        return "waiting_user" if current in ("open", "in_progress") else current
    return "open" if current in ("waiting_user", "resolved") else current


def create_ticket(user: Dict[str, Any], subject: str, category: str, priority: str, message: str) -> Dict[str, Any]:
    if user.get("role") not in ("user", "mentor"):
        raise ForbiddenError("Only users and mentors can open tickets")
    stamp = now()
    ticket = Ticket(
        ticket_number=next_ticket_number(),
        created_by=str(user["_id"]),
        role=user["role"],
        subject=subject.strip(),
        category=category,
        priority=priority,
        last_message_at=stamp,
    )
    ticket_id = create_document("ticket", ticket)

    create_document("ticketmessage", TicketMessage(
        ticket_id=ticket_id, sender_id=str(user["_id"]), sender_role=user["role"], message=message.strip(),
    ))
    logger.info("Ticket %s opened by %s", ticket.ticket_number, user["_id"])
    return get_ticket(ticket_id)


def get_ticket(ticket_id: str) -> Dict[str, Any]:
    ticket = collection("ticket").find_one({"_id": to_object_id(ticket_id, "ticket id")})
    if not ticket:
        raise NotFoundError("Ticket")
    return ticket


def _check_access(ticket: Dict[str, Any], user: Dict[str, Any]) -> None:
    if user.get("role") != "admin" and ticket["createdBy"] != str(user["_id"]):
        raise ForbiddenError("You do not have access to this ticket")


def ticket_detail(ticket_id: str, user: Dict[str, Any]) -> Dict[str, Any]:
    ticket = get_ticket(ticket_id)
    _check_access(ticket, user)
    filt: Dict[str, Any] = {"ticketId": str(ticket["_id"])}
    if user.get("role") != "admin":
        filt["isInternal"] = False
    ticket["messages"] = list(collection("ticketmessage").find(filt).sort("createdAt", 1))
    return ticket


def list_my_tickets(user: Dict[str, Any], status: Optional[str], page: int, limit: int) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    filt: Dict[str, Any] = {"createdBy": str(user["_id"])}
    if status:
        filt["status"] = status
    return paginate("ticket", filt, page, limit, sort=[("lastMessageAt", -1)])


def list_all_tickets(
    status: Optional[str], priority: Optional[str], assigned_to: Optional[str], page: int, limit: int
) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
    filt: Dict[str, Any] = {}
    if status:
        filt["status"] = status
    if priority:
        filt["priority"] = priority
    if assigned_to:
        filt["assignedTo"] = assigned_to
    return paginate("ticket", filt, page, limit, sort=[("lastMessageAt", -1)])


def reply(ticket_id: str, user: Dict[str, Any], message: str, internal: bool = False) -> Dict[str, Any]:
    ticket = get_ticket(ticket_id)
    _check_access(ticket, user)
    message = (message or "").strip()
    if not message:
        raise WorkflowError("Message is required", status_code=422)
    role = user.get("role", "user")
    if internal and role != "admin":
        raise ForbiddenError("Only admins can add internal notes")

    new_status = ticket["status"] if internal else reply_status(ticket["status"], role)
    if internal and ticket["status"] == "closed":
        raise WorkflowError("Cannot reply to closed ticket")

    message_id = create_document("ticketmessage", TicketMessage(
        ticket_id=str(ticket["_id"]), sender_id=str(user["_id"]), sender_role=role, message=message, is_internal=internal,
    ))
    stamp = now()
    collection("ticket").update_one(
        {"_id": ticket["_id"]}, {"$set": {"status": new_status, "lastMessageAt": stamp, "updatedAt": stamp}}
    )

    if role == "admin" and not internal:
        create_or_update(
            ticket["createdBy"], "ticket_update",
            title=f"Reply on ticket {ticket['ticketNumber']}",
            message=f"Support replied to \"{ticket['subject']}\".",
            action_url=f"/dashboard/tickets/{ticket['_id']}",
            metadata={"ticketId": str(ticket["_id"])},
        )
    return {"messageId": message_id, "status": new_status}


def set_status(ticket_id: str, status: str) -> Dict[str, Any]:
    ticket = get_ticket(ticket_id)
    collection("ticket").update_one({"_id": ticket["_id"]}, {"$set": {"status": status, "updatedAt": now()}})
    if status in ("resolved", "closed"):
        create_or_update(
            ticket["createdBy"], "ticket_update",
            title=f"Ticket {ticket['ticketNumber']} {status}",
            message=f"Your ticket \"{ticket['subject']}\" was marked {status}.",
            action_url=f"/dashboard/tickets/{ticket['_id']}",
            metadata={"ticketId": str(ticket["_id"]), "status": status},
        )
    return {**ticket, "status": status}


def assign(ticket_id: str, admin_id: Optional[str]) -> Dict[str, Any]:
    ticket = get_ticket(ticket_id)
    if admin_id is not None:
        assignee = collection("user").find_one({"_id": to_object_id(admin_id, "admin id")})
        if not assignee or assignee.get("role") != "admin":
            raise WorkflowError("Tickets can only be assigned to admins")
    update: Dict[str, Any] = {"assignedTo": admin_id, "updatedAt": now()}
    if admin_id and ticket["status"] == "open":
        update["status"] = "in_progress"
    collection("ticket").update_one({"_id": ticket["_id"]}, {"$set": update})
    return {**ticket, **update}
