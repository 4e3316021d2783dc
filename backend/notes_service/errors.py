import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger("notes.errors")


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: ErrorDetail


class NotesException(Exception):
    """Base for every controlled error of the service."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)


# ---------------------------------------------------------------------------
# Validation kinds
# ---------------------------------------------------------------------------
class InvalidTitle(NotesException):
    def __init__(self, message: str = "Title is required"):
        super().__init__(code="invalid_title", message=message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidContent(NotesException):
    def __init__(self, message: str = "Content is required"):
        super().__init__(code="invalid_content", message=message, status_code=status.HTTP_400_BAD_REQUEST)


class TooManyTags(NotesException):
    def __init__(self, message: str = "Maximum 10 tags allowed"):
        super().__init__(code="too_many_tags", message=message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidTags(NotesException):
    def __init__(self, message: str = "Tags must be a list of strings"):
        super().__init__(code="invalid_tags", message=message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidCursor(NotesException):
    def __init__(self, message: str = "Invalid cursor"):
        super().__init__(code="invalid_cursor", message=message, status_code=status.HTTP_400_BAD_REQUEST)


# ---------------------------------------------------------------------------
# Access and storage kinds
# ---------------------------------------------------------------------------
class UnauthorizedError(NotesException):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(code="unauthorized", message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class NotFoundError(NotesException):
    def __init__(self, resource: str = "Note"):
        super().__init__(code="not_found", message=f"{resource} not found", status_code=status.HTTP_404_NOT_FOUND)


class ConflictError(NotesException):
    def __init__(self, message: str = "Note was modified concurrently"):
        super().__init__(code="conflict", message=message, status_code=status.HTTP_409_CONFLICT)


class StorageUnavailable(NotesException):
    """Backend connectivity, throttling or I/O failure. Never retried here."""

    def __init__(self, message: str = "Storage unavailable"):
        super().__init__(
            code="storage_unavailable",
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------
def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )


async def notes_exception_handler(request: Request, exc: NotesException):
    if isinstance(exc, StorageUnavailable):
        # cause may name paths or keys; keep it in the log only
        logger.error("Storage unavailable: %s", exc.__cause__ or exc)
        return _error_response(exc.status_code, exc.code, "Storage unavailable")
    return _error_response(exc.status_code, exc.code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected request on %s: %d validation error(s)", request.url.path, len(exc.errors()))
    return _error_response(status.HTTP_400_BAD_REQUEST, "invalid_request", "Malformed request")


async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s", exc)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal Server Error")
