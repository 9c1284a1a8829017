"""Custom exception classes for the application."""

from typing import Any, Dict, List, Optional


class LaunchSpaceException(Exception):
    """Base exception for all Launch Space errors."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(LaunchSpaceException):
    """Raised when input is malformed or missing required fields."""

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(LaunchSpaceException):
    """Raised when a requested resource is not found."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} with identifier '{identifier}' not found")


class UnauthorizedError(LaunchSpaceException):
    """Raised when the caller identity is missing or invalid."""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(LaunchSpaceException):
    """Raised when the caller may not touch the resource or field."""

    status_code = 403
    code = "FORBIDDEN"


class IllegalStateError(LaunchSpaceException):
    """Raised when an operation is not allowed in the resource's current state."""

    status_code = 400
    code = "ILLEGAL_STATE"


class DuplicateSlugError(LaunchSpaceException):
    """Raised when an explicitly requested slug is already taken."""

    status_code = 409
    code = "DUPLICATE_SLUG"

    def __init__(self, slug: str):
        super().__init__(f"Slug '{slug}' is already in use")
        self.slug = slug


class StorageError(LaunchSpaceException):
    """Raised when the persistence layer fails. Details stay in the logs."""

    status_code = 500
    code = "STORAGE_ERROR"

    def __init__(self, message: str = "A storage error occurred"):
        super().__init__(message)
