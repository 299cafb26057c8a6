# pg_repense/core/errors.py - Domain errors raised by the service layer
from typing import Any, Dict


class ServiceError(Exception):
    """
    A business rule rejected the operation.

    `message` is the human readable text sent to clients, `code` the
    machine readable identifier. Any extra keyword arguments are added to
    the JSON error body (e.g. the ids of students missing a check-in).
    """

    status_code = 400

    def __init__(self, message: str, code: str, status_code: int = None, **extra: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        body.update(self.extra)
        return body

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, status_code={self.status_code})"


class EnrollmentError(ServiceError):
    pass


class SessionError(ServiceError):
    pass


class ClassError(ServiceError):
    pass


class NotificationError(ServiceError):
    pass


class ConversationError(ServiceError):
    pass


class AuthError(ServiceError):
    status_code = 401
