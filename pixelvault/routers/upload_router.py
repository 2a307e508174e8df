from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
import logging
import time

from ..config import settings
from ..dependencies import get_current_user, get_quota_accountant, get_upload_pipeline
from ..application.services.quota_service import QuotaAccountant
from ..application.services.upload_service import IncomingFile, UploadPipeline
from ..schemas.images.image import BatchUploadResponse, StorageUsageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["Upload"])


def read_capped(uploaded: UploadFile, limit: int) -> bytes:
    """Read at most ``limit + 1`` bytes: enough for the pipeline to reject an oversized file."""
    return uploaded.file.read(limit + 1)


@router.post("", response_model=BatchUploadResponse, status_code=201)
def upload_images(
    response: Response,
    files: Optional[List[UploadFile]] = File(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    alt: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    current_user: str = Depends(get_current_user),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
):
    deadline = time.monotonic() + settings.INGEST_TIMEOUT_SECONDS
    incoming = [
        IncomingFile(
            name=uploaded.filename or "upload",
            mime_type=uploaded.content_type or "",
            data=read_capped(uploaded, settings.MAX_FILE_SIZE),
        )
        for uploaded in (files or [])
    ]
    result = pipeline.ingest(
        owner_id=current_user,
        category_id=category,
        files=incoming,
        tags=tags,
        alt=alt,
        description=description,
        deadline=deadline,
    )
    if result.status == "partial":
        response.status_code = 207
    elif result.status == "failed":
        response.status_code = 422
    return BatchUploadResponse.from_result(result)


@router.get("/usage", response_model=StorageUsageResponse)
def storage_usage(
    current_user: str = Depends(get_current_user),
    quota: QuotaAccountant = Depends(get_quota_accountant),
):
    usage = quota.usage(current_user)
    return StorageUsageResponse(
        used=usage.used,
        limit=usage.limit,
        available=usage.available,
        percentage=usage.percentage,
    )
