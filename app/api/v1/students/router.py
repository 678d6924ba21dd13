from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import StudentCreate, StudentCreateResponse, StudentResponse
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentCreateResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentCreateResponse:
    try:
        return await service.create_student(db, current_user.tenant_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def list_students(
    class_id: Optional[UUID] = Query(None),
    active_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentResponse]:
    return await service.list_students(db, current_user.tenant_id, class_id=class_id, active_only=active_only)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentResponse:
    try:
        return await service.get_student(db, current_user.tenant_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
