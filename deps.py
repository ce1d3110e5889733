"""Request dependencies: acting user, role guards, pagination, envelope."""

from typing import Any, Callable, Dict, Optional

from fastapi import Depends, Header, HTTPException, Query, status

from config import get_settings
from database import collection, is_valid_object_id, serialize_doc, to_object_id
from logger import bind_actor


def get_current_user(x_user_id: Optional[str] = Header(None)) -> Dict[str, Any]:
    """Load the acting user named by the ``X-User-Id`` header.

    Session handling lives in the front end; it forwards the signed-in
    user's id on every API call.
    """
    if not x_user_id or not is_valid_object_id(x_user_id):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    user = collection("user").find_one({"_id": to_object_id(x_user_id)})
    if not user or not user.get("isActive", True):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    bind_actor(user)
    return user


def require_role(*roles: str) -> Callable[..., Dict[str, Any]]:
    def dependency(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if user.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{' or '.join(r.capitalize() for r in roles)} access required",
            )
        return user
    return dependency


require_admin = require_role("admin")
require_reviewer = require_role("mentor", "admin")


class PageParams:
    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
    ):
        settings = get_settings()
        self.page = page
        self.limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": _jsonable(data)}
    if message:
        body["message"] = message
    body.update({k: _jsonable(v) for k, v in extra.items()})
    return body


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value
