"""Fee categories router."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import CatalogType
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    FeeCategoryCreate,
    FeeCategoryDropdownItem,
    FeeCategoryInitResponse,
    FeeCategoryResponse,
    FeeCategoryUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-categories", tags=["fee-categories"])


@router.post(
    "/init",
    response_model=FeeCategoryInitResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def initialize_default_categories(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeCategoryInitResponse:
    try:
        created = await service.initialize_default_categories(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return FeeCategoryInitResponse(
        message="Default categories initialized successfully",
        count=len(created),
        data=created,
    )


@router.get(
    "",
    response_model=List[FeeCategoryResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_categories(
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    type: Optional[CatalogType] = Query(None, description="system or custom"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeCategoryResponse]:
    return await service.list_fee_categories(
        db, current_user.tenant_id, active=active, catalog_type=type
    )


@router.get(
    "/dropdown",
    response_model=List[FeeCategoryDropdownItem],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_categories_dropdown(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeCategoryDropdownItem]:
    return await service.get_categories_dropdown(db, current_user.tenant_id)


@router.post(
    "",
    response_model=FeeCategoryResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_category(
    payload: FeeCategoryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeCategoryResponse:
    try:
        return await service.create_fee_category(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{category_id}",
    response_model=FeeCategoryResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee_category(
    category_id: UUID,
    payload: FeeCategoryUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeCategoryResponse:
    try:
        return await service.update_fee_category(db, current_user.tenant_id, category_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{category_id}",
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_fee_category(
    category_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    try:
        await service.delete_fee_category(db, current_user.tenant_id, category_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"success": True, "message": "Category deleted successfully"}
