"""Error types raised by the workflow services."""

from typing import Optional


class WorkflowError(Exception):
    """Raised when a request is refused by a workflow rule.

    Rendered by the application into the ``{success: false, error}``
    envelope with ``status_code`` as the HTTP status.
    """

    def __init__(self, message: str, status_code: int = 400, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code


class NotFoundError(WorkflowError):
    def __init__(self, what: str):
        super().__init__(f"{what} not found", status_code=404, code="NOT_FOUND")


class ForbiddenError(WorkflowError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, status_code=403, code="FORBIDDEN")
