"""
Error taxonomy for the task engine.

Every error carries the HTTP status it maps to; the FastAPI handler in
``taskboard.main`` renders them as ``{"status": "error", "message": ...}``.
"""


class TaskBoardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TaskBoardError):
    """Rejected input. Raised before anything is written."""
    status_code = 400


class AuthorizationError(TaskBoardError):
    status_code = 403


class NotFoundError(TaskBoardError):
    """Entity is missing or lives outside the caller's workspace."""
    status_code = 404


class ConflictError(TaskBoardError):
    status_code = 409


class TransactionError(TaskBoardError):
    """A multi-statement operation failed and was rolled back in full."""
    status_code = 500
