from typing import List
from fastapi import APIRouter, Depends
import logging

from ..dependencies import get_category_tracker, get_current_user
from ..application.services.category_service import CategoryTracker
from ..schemas.categories.category import CategoryRequest, CategoryResponse
from ..schemas.common.common import MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories", tags=["Categories"])


@router.get("", response_model=List[CategoryResponse])
def list_categories(
    current_user: str = Depends(get_current_user),
    categories: CategoryTracker = Depends(get_category_tracker),
):
    return [CategoryResponse.from_dto(c) for c in categories.list()]


@router.post("", response_model=CategoryResponse, status_code=201)
def create_category(
    body: CategoryRequest,
    current_user: str = Depends(get_current_user),
    categories: CategoryTracker = Depends(get_category_tracker),
):
    category = categories.create(body.name, body.description, created_by=current_user)
    logger.info(f"User {current_user} created category {category.id}")
    return CategoryResponse.from_dto(category)


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category(
    category_id: str,
    body: CategoryRequest,
    current_user: str = Depends(get_current_user),
    categories: CategoryTracker = Depends(get_category_tracker),
):
    return CategoryResponse.from_dto(categories.rename(category_id, body.name, body.description))


@router.delete("/{category_id}", response_model=MessageResponse)
def delete_category(
    category_id: str,
    current_user: str = Depends(get_current_user),
    categories: CategoryTracker = Depends(get_category_tracker),
):
    categories.delete(category_id)
    return MessageResponse(message="Category deleted successfully")
