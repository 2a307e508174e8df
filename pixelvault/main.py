import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

# .env has to be loaded before settings are read
load_dotenv()

from .config import settings
from .database import create_db_and_tables, engine
from .exceptions import (
    PixelVaultError,
    http_exception_handler,
    pixelvault_exception_handler,
    validation_exception_handler,
)
from .middleware import ErrorHandlingMiddleware, LoggingMiddleware, RequestSizeLimitMiddleware, SecurityMiddleware
from .routers import auth_router, categories_router, images_router, upload_router


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )
    # SQL echo is controlled by DEBUG; keep the driver quiet otherwise
    if not settings.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(settings.image_dir, exist_ok=True)
    create_db_and_tables()
    logger.info(
        f"{settings.APP_NAME} {settings.APP_VERSION} ready: storing images in {os.path.abspath(settings.image_dir)}, "
        f"max {settings.MAX_FILES_PER_BATCH} files of {settings.MAX_FILE_SIZE} bytes per upload"
    )
    yield
    logger.info(f"{settings.APP_NAME} stopped")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url=("/docs" if settings.DOCS_ENABLED else None),
    redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
    openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None),
)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(PixelVaultError, pixelvault_exception_handler)

# Outermost last: size check runs first, error handling wraps the routes
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(SecurityMiddleware)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestSizeLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth_router, upload_router, images_router, categories_router):
    app.include_router(module.router)


@app.get("/health")
def health():
    checks = {"database": "ok", "storage": "ok"}
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check: database unavailable: {e}")
        checks["database"] = "error"
    if not (os.path.isdir(settings.image_dir) and os.access(settings.image_dir, os.W_OK)):
        checks["storage"] = "error"
    status = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    return {"status": status, "app": settings.APP_NAME, "version": settings.APP_VERSION, "checks": checks}
