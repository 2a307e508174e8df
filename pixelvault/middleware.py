import logging
import time
import uuid
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from .config import settings
from .exceptions import create_error_response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
# Non-upload endpoints only ever receive small JSON bodies
MAX_JSON_BODY = 1024 * 1024


class SecurityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if request.url.path.startswith("/images/") and request.url.path.endswith("/file"):
            # Served images belong to one user; keep them out of shared caches
            response.headers["Cache-Control"] = "private, max-age=3600"
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request and tags the response with a request id."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        client_host = request.client.host if request.client else "unknown"
        started = time.perf_counter()

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            f"[{request_id}] {request.method} {request.url.path} from {client_host} "
            f"-> {response.status_code} in {elapsed_ms:.1f}ms",
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            request_id = getattr(request.state, "request_id", "-")
            logger.error(f"[{request_id}] Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            message = f"Internal server error: {e}" if settings.DEBUG else "Internal server error"
            return JSONResponse(status_code=500, content=create_error_response(message, 500))


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects bodies larger than one full batch on /upload, or 1MB elsewhere.

    Only the declared Content-Length is checked here; per-file size limits are
    enforced by the upload pipeline on the bytes actually received.
    """

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length")
        if declared and declared.isdigit():
            if request.url.path.startswith("/upload"):
                limit = settings.MAX_FILE_SIZE * settings.MAX_FILES_PER_BATCH
            else:
                limit = MAX_JSON_BODY
            if int(declared) > limit:
                logger.warning(f"Rejected {request.method} {request.url.path}: body of {declared} bytes exceeds {limit}")
                return JSONResponse(
                    status_code=413,
                    content=create_error_response("Request entity too large", 413),
                )
        return await call_next(request)
