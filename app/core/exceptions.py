"""Application-level exceptions and FastAPI exception handlers."""


from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500, code: str = "INTERNAL_ERROR"):
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)

class NotFoundError(AppException):
    def __init__(self, entity: str, entity_id: str | None = None):
        msg = f"{entity} not found" if not entity_id else f"{entity} '{entity_id}' not found"
        super().__init__(msg, status_code=404, code="NOT_FOUND")

class ValidationError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=422, code="VALIDATION_ERROR")

class EmptyUploadError(AppException):
    def __init__(self, message: str = "Uploaded file contains no data rows."):
        super().__init__(message, status_code=400, code="EMPTY_UPLOAD")

class PayloadTooLargeError(AppException):
    def __init__(self, limit_mb: int):
        super().__init__(
            f"File size exceeds the {limit_mb}MB limit.", status_code=413, code="PAYLOAD_TOO_LARGE"
        )

class UnsupportedMediaTypeError(AppException):
    def __init__(self, message: str):
        super().__init__(message, status_code=415, code="UNSUPPORTED_MEDIA_TYPE")

class InvalidTenantError(AppException):
    def __init__(self, tenant_id: str):
        super().__init__(
            f"Invalid tenant id '{tenant_id}'. Use 1-64 letters, digits, '-' or '_'.",
            status_code=400,
            code="INVALID_TENANT",
        )

# ---------------------------------------------------------------------------
# Row-level ingestion errors (caught per row by the batch orchestrator,
# never rendered as HTTP responses)
# ---------------------------------------------------------------------------

class IngestionError(Exception):
    """Base class for failures attributed to a single uploaded row."""

    stage = "write"

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)

class ResolutionError(IngestionError):
    """A reference on the row could not be resolved and has no fallback."""

    stage = "resolution"

class RowConflictError(IngestionError):
    """The row is well formed but contradicts the record it updates."""

    stage = "validation"

class WriteError(IngestionError):
    """The storage layer rejected the parent or child insert for a row."""

    stage = "write"

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def _error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}

def register_exception_handlers(app: FastAPI) -> None:
    """Attach all custom exception handlers to the FastAPI app."""

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.code, exc.message),
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content=_error_body("NOT_FOUND", "Resource not found"),
        )

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", "An unexpected error occurred"),
        )
