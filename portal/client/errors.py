from typing import Dict, List, Optional


class ClientError(Exception):
    """Base class for everything the portal client raises."""
    code = "CLIENT_ERROR"

    def __init__(self, message: str = "", code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class Unauthenticated(ClientError):
    """Missing, invalid or expired token. The session has already been cleared."""
    code = "UNAUTHENTICATED"

    @property
    def expired(self) -> bool:
        return self.code == "TOKEN_EXPIRED"


class Forbidden(ClientError):
    code = "FORBIDDEN"


class NotFound(ClientError):
    code = "NOT_FOUND"


class Conflict(ClientError):
    code = "CONFLICT"


class ValidationFailed(ClientError):
    code = "VALIDATION_FAILED"

    def __init__(self, message: str = "", errors: Optional[Dict[str, List[str]]] = None, code: Optional[str] = None):
        super().__init__(message, code)
        self.errors = errors or {}


class ServerError(ClientError):
    code = "SERVER_ERROR"


class TransportFailure(ClientError):
    """Network error or timeout. Cached data is left as it was."""
    code = "TRANSPORT_FAILURE"


class Aborted(ClientError):
    """
    The request was superseded by a newer one for the same resource kind.
    Callers swallow it; it is never shown to the user.
    """
    code = "ABORTED"


class IncompleteRoster(ClientError):
    code = "INCOMPLETE_ROSTER"

    def __init__(self, remaining: int):
        super().__init__(f"{remaining} student(s) are not marked yet.")
        self.remaining = remaining


class SubmissionInProgress(ClientError):
    code = "SUBMISSION_IN_PROGRESS"

    def __init__(self):
        super().__init__("Attendance is already being submitted.")


class InvalidTransition(ClientError):
    code = "INVALID_TRANSITION"
