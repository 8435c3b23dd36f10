import uuid

from fastapi import APIRouter, Depends, Query, status

from taskboard.dependencies import get_category_service, get_current_user
from taskboard.models.user import User as UserModel
from taskboard.schemas.category import CategoryCreate, CategoryList, CategoryUpdate, CategoryView
from taskboard.schemas.task import MessageResponse
from taskboard.services.categories import CategoryService

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=CategoryList)
async def list_categories(
    workspace_id: uuid.UUID = Query(..., alias="workspaceId"),
    current_user: UserModel = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    return await service.list_categories(workspace_id, current_user.id)


@router.post("", response_model=CategoryView, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: CategoryCreate,
    current_user: UserModel = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    return await service.create_category(category_data, current_user.id)


@router.put("/{category_id}", response_model=CategoryView)
async def update_category(
    category_id: int,
    update_data: CategoryUpdate,
    current_user: UserModel = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    return await service.update_category(category_id, update_data, current_user.id)


@router.delete("/{category_id}", response_model=MessageResponse)
async def delete_category(
    category_id: int,
    current_user: UserModel = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    await service.delete_category(category_id, current_user.id)
    return {"message": "Category deleted successfully"}
