"""In-app notification endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

import notifications
from deps import PageParams, get_current_user, ok
from schemas import Document

router = APIRouter(prefix="/notifications", tags=["notifications"])


class MarkRead(Document):
    # Omitted or empty marks everything read
    ids: Optional[List[str]] = None


@router.get("")
def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    paging: PageParams = Depends(),
    user: Dict[str, Any] = Depends(get_current_user),
):
    docs, meta = notifications.list_for_user(str(user["_id"]), unread_only, paging.page, paging.limit)
    return ok(docs, pagination=meta, unreadCount=notifications.unread_count(str(user["_id"])))


@router.get("/count")
def unread_count(user: Dict[str, Any] = Depends(get_current_user)):
    return ok({"unread": notifications.unread_count(str(user["_id"]))})


@router.patch("/read")
def mark_read(payload: MarkRead, user: Dict[str, Any] = Depends(get_current_user)):
    changed = notifications.mark_read(str(user["_id"]), payload.ids)
    return ok({"updated": changed})
