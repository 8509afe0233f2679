"""Application error taxonomy.

Every domain error carries a human message and a machine ``code``; the HTTP
layer maps codes to status codes in one place (``ERROR_STATUS_MAP``).
"""

from fastapi import status


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, code: str = "app_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(AppError):
    """Referenced entity is absent, or its existence is concealed."""

    def __init__(self, entity: str, key: object):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} with id '{key}' was not found.", "not_found")


class UnauthorizedError(AppError):
    """Caller lacks the role required for the operation.

    Post and comment mutations never raise this; they report NotFound so the
    target's existence is not revealed.
    """

    def __init__(self, message: str = "Not allowed to perform this operation"):
        super().__init__(message, "unauthorized")


class ConflictError(AppError):
    """Entity already exists."""

    def __init__(self, entity: str, key: object):
        super().__init__(f"{entity} with id '{key}' already exists.", "conflict")


class InvalidRelationError(AppError):
    """Malformed relationship between entities (e.g. parent on another post)."""

    def __init__(self, message: str):
        super().__init__(message, "validation_error")


class InfrastructureError(AppError):
    """Backing service unreachable."""

    def __init__(self, message: str, code: str = "infrastructure_error"):
        super().__init__(message, code)


class CacheUnavailableError(InfrastructureError):
    """Cache store failed; callers degrade to a cache miss."""

    def __init__(self, message: str = "Cache unavailable"):
        super().__init__(message, "infrastructure_error")


ERROR_STATUS_MAP: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "unauthorized": status.HTTP_403_FORBIDDEN,
    "conflict": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "infrastructure_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for_error(error: AppError) -> int:
    """HTTP status code for an application error (500 when unmapped)."""
    return ERROR_STATUS_MAP.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)
