from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse
import logging

from ..config import settings
from ..dependencies import get_current_user, get_image_service
from ..application.services.image_service import ImageService
from ..schemas.images.image import ImageListResponse, ImageResponse
from ..schemas.common.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/images", tags=["Images"])


@router.get("", response_model=ImageListResponse)
def list_images(
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    search: Optional[str] = None,
    current_user: str = Depends(get_current_user),
    images: ImageService = Depends(get_image_service),
):
    if category == "all":
        category = None
    result = images.search(current_user, category_id=category, query=search, page=page, page_size=page_size)
    return ImageListResponse.from_page(result)


@router.get("/{image_id}", response_model=ImageResponse)
def get_image(
    image_id: str,
    current_user: str = Depends(get_current_user),
    images: ImageService = Depends(get_image_service),
):
    return ImageResponse.from_dto(images.get_image(current_user, image_id))


@router.get("/{image_id}/file")
def get_image_file(
    image_id: str,
    current_user: str = Depends(get_current_user),
    images: ImageService = Depends(get_image_service),
):
    image, path = images.open_image(current_user, image_id)
    return FileResponse(path, media_type=image.mime_type, filename=image.original_name)


@router.delete("/{image_id}", response_model=MessageResponse)
def delete_image(
    image_id: str,
    current_user: str = Depends(get_current_user),
    images: ImageService = Depends(get_image_service),
):
    images.delete_image(current_user, image_id)
    return MessageResponse(message="Image deleted successfully")
