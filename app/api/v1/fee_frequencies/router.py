"""Fee frequencies router."""

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
    FeeFrequencyCreate,
    FeeFrequencyDropdownItem,
    FeeFrequencyInitResponse,
    FeeFrequencyResponse,
    FeeFrequencyUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-frequencies", tags=["fee-frequencies"])


@router.post(
    "/init",
    response_model=FeeFrequencyInitResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def initialize_default_frequencies(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeFrequencyInitResponse:
    try:
        created = await service.initialize_default_frequencies(db, current_user.tenant_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return FeeFrequencyInitResponse(
        message="Default frequencies initialized successfully",
        count=len(created),
        data=created,
    )


@router.get(
    "",
    response_model=List[FeeFrequencyResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_frequencies(
    active: Optional[bool] = Query(None, description="Filter by active flag"),
    type: Optional[CatalogType] = Query(None, description="system or custom"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeFrequencyResponse]:
    return await service.list_fee_frequencies(
        db, current_user.tenant_id, active=active, catalog_type=type
    )


@router.get(
    "/dropdown",
    response_model=List[FeeFrequencyDropdownItem],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_frequencies_dropdown(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeFrequencyDropdownItem]:
    return await service.get_frequencies_dropdown(db, current_user.tenant_id)


@router.post(
    "",
    response_model=FeeFrequencyResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_frequency(
    payload: FeeFrequencyCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeFrequencyResponse:
    try:
        return await service.create_fee_frequency(db, current_user.tenant_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{frequency_id}",
    response_model=FeeFrequencyResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee_frequency(
    frequency_id: UUID,
    payload: FeeFrequencyUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeFrequencyResponse:
    try:
        return await service.update_fee_frequency(db, current_user.tenant_id, frequency_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{frequency_id}",
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_fee_frequency(
    frequency_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> dict:
    try:
        await service.delete_fee_frequency(db, current_user.tenant_id, frequency_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {"success": True, "message": "Frequency deleted successfully"}
