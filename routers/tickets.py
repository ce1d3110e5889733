"""Support ticket endpoints for users and mentors."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import Field

import tickets
from deps import PageParams, get_current_user, ok
from schemas import Document, TicketCategory, TicketPriority, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreate(Document):
    subject: str = Field(..., min_length=1, max_length=200)
    category: TicketCategory = "other"
    priority: TicketPriority = "medium"
    message: str = Field(..., min_length=1, max_length=5000)


class TicketReply(Document):
    message: str = Field(..., min_length=1, max_length=5000)


@router.post("", status_code=201)
def open_ticket(payload: TicketCreate, user: Dict[str, Any] = Depends(get_current_user)):
    ticket = tickets.create_ticket(user, payload.subject, payload.category, payload.priority, payload.message)
    return ok(ticket, message=f"Ticket {ticket['ticketNumber']} created")


@router.get("/my")
def my_tickets(
    status: Optional[TicketStatus] = None,
    paging: PageParams = Depends(),
    user: Dict[str, Any] = Depends(get_current_user),
):
    docs, meta = tickets.list_my_tickets(user, status, paging.page, paging.limit)
    return ok(docs, pagination=meta)


@router.get("/{ticket_id}")
def ticket_detail(ticket_id: str, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(tickets.ticket_detail(ticket_id, user))


@router.post("/{ticket_id}/reply")
def reply(ticket_id: str, payload: TicketReply, user: Dict[str, Any] = Depends(get_current_user)):
    return ok(tickets.reply(ticket_id, user, payload.message))
