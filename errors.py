"""
Error Taxonomy
Every expected failure is raised as a TaskAppError subclass; the HTTP layer
turns it into a {status: false, msg} body with the matching status code.
"""


class TaskAppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TaskAppError):
    status_code = 400


class AuthenticationError(TaskAppError):
    status_code = 401


class PermissionDeniedError(TaskAppError):
    status_code = 403


class NotFoundError(TaskAppError):
    status_code = 404


class ConflictError(TaskAppError):
    """Duplicate email/phone/task code (400) or a concurrent write (409)."""
    status_code = 400


class ServiceError(TaskAppError):
    """A downstream dependency (MongoDB, Gemini) failed."""
    status_code = 500

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message, 503 if retryable else 500)
        self.retryable = retryable
