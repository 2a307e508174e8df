from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from typing import Optional


class PixelVaultError(Exception):
    """Base class for errors raised by the upload and storage core."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PixelVaultError):
    """Batch-level rejection: bad category, disallowed type, too many files."""
    status_code = 400


class QuotaExceeded(PixelVaultError):
    status_code = 413

    def __init__(self, message: str = "Insufficient storage space", used: int = 0, limit: int = 0, requested: int = 0):
        super().__init__(message)
        self.used = used
        self.limit = limit
        self.requested = requested


class NotFound(PixelVaultError):
    status_code = 404


class CategoryInUse(PixelVaultError):
    status_code = 409

    def __init__(self, image_count: int):
        super().__init__(f"Cannot delete category because it contains {image_count} image(s)")
        self.image_count = image_count


class AuthenticationError(PixelVaultError):
    status_code = 401


class BlobStoreError(PixelVaultError):
    status_code = 500


class BlobWriteFailure(BlobStoreError):
    pass


class RecordPersistFailure(PixelVaultError):
    status_code = 500


class CleanupFailure(PixelVaultError):
    """A compensating delete failed and left a known orphaned blob."""
    status_code = 500

    def __init__(self, locator: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to remove orphaned blob {locator}")
        self.locator = locator
        self.cause = cause


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }

def create_success_response(data) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }

async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", 401)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )

async def pixelvault_exception_handler(request: Request, exc: PixelVaultError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.message, exc.status_code)
    )

async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report the first invalid field in the standard envelope"""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path", "form"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=422, content=create_error_response(message, 422))
