from typing import Dict, List, Optional


# --- Service Layer Exception Classes ---
class ServiceError(Exception):
    """General exception class for the service layer."""
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str = "An unexpected server error occurred."):
        super().__init__(message)
        self.message = message


class ValidationFailed(ServiceError):
    status_code = 422
    code = "VALIDATION_FAILED"

    def __init__(self, message: str = "Validation failed", errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.errors = errors or {}


class Unauthenticated(ServiceError):
    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Could not validate credentials", code: Optional[str] = None):
        super().__init__(message)
        if code:
            self.code = code


class Forbidden(ServiceError):
    """
    Scope mismatch. The message never says whether the target exists, so an
    out-of-tenant id and a missing id produce the same response.
    """
    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "You do not have access to this resource."):
        super().__init__(message)


class NotFound(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class Conflict(ServiceError):
    status_code = 409
    code = "CONFLICT"


class StorageError(ServiceError):
    """Raised when a stored record (e.g. a password hash) cannot be read."""
    status_code = 500
    code = "STORAGE_ERROR"
