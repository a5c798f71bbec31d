"""Application error types.

Every error carries the HTTP status and the machine-readable ``code`` that
ends up in the ``{"status": false, "code": ..., "message": ...}`` envelope.
"""
from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an API error response."""

    status_code: int = 500
    code: str = "SERVER_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.message
        if code:
            self.code = code
        super().__init__(self.message)


class Unauthenticated(AppError):
    status_code = 401
    code = "UNAUTHENTICATED"
    message = "Please login first"


class Unauthorized(AppError):
    status_code = 403
    code = "UNAUTHORIZED"
    message = "You are not allowed to perform this action"


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"
    message = "Resource not found"


class UserNotFound(NotFound):
    code = "USER_NOT_FOUND"
    message = "User not found. Please login again."


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    message = "Invalid request"


class MissingFields(ValidationError):
    code = "MISSING_FIELDS"
    message = "Title, author, and description are required"


class MissingFiles(ValidationError):
    code = "MISSING_FILES"
    message = "Both thumbnail and content file are required"


class MissingData(ValidationError):
    code = "MISSING_DATA"
    message = "Required data is missing"


class UnsupportedFormat(ValidationError):
    code = "UNSUPPORTED_FORMAT"
    message = "Only .txt, .docx, and .pdf files are allowed for content"


class ExtractionError(AppError):
    status_code = 400
    code = "EXTRACTION_ERROR"
    message = "Error extracting text"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    message = "Resource already exists"


class StorageError(AppError):
    status_code = 500
    code = "STORAGE_ERROR"
    message = "Failed to move files to permanent storage"


class ServerError(AppError):
    pass
