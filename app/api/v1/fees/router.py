"""Fees router: structures, assignment, student fees, discount, cancellation, payments, summaries."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import SummaryLevel
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    AssignFeeRequest,
    AutoAssignRequest,
    CancelAssignmentRequest,
    ClassFeeSummary,
    ComprehensiveFeeSummary,
    DiscountIn,
    FeeAssignmentResponse,
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    PaymentCreate,
    PaymentListResponse,
    PaymentResponse,
    SchoolFeeSummary,
    StudentFeeSummary,
    StudentFeesResponse,
)
from . import service, summary_service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Fee Structure ---
@router.post(
    "/structures",
    response_model=FeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.create_fee_structure(db, current_user.tenant_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/structures",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_fee_structures(
    academic_year: Optional[str] = Query(None, description="e.g. 2024-2025"),
    class_id: Optional[UUID] = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeStructureResponse]:
    return await service.list_fee_structures(
        db,
        current_user.tenant_id,
        academic_year=academic_year,
        class_id=class_id,
        include_inactive=include_inactive,
    )


@router.get(
    "/structures/{fee_structure_id}",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_structure(
    fee_structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.get_fee_structure(db, current_user.tenant_id, fee_structure_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/structures/{fee_structure_id}",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_fee_structure(
    fee_structure_id: UUID,
    payload: FeeStructureUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.update_fee_structure(
            db, current_user.tenant_id, fee_structure_id, payload, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/structures/{fee_structure_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("fees", "delete"))],
)
async def delete_fee_structure(
    fee_structure_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_fee_structure(db, current_user.tenant_id, fee_structure_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Fee Assignment ---
@router.post(
    "/assign",
    response_model=FeeAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def assign_fee(
    payload: AssignFeeRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeAssignmentResponse:
    try:
        return await service.assign_fee(db, current_user.tenant_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/auto-assign",
    response_model=List[FeeAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def auto_assign_class_fees(
    payload: AutoAssignRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeAssignmentResponse]:
    try:
        return await service.auto_assign_class_fees(
            db,
            payload.student_id,
            payload.class_id,
            current_user.tenant_id,
            changed_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student/{student_id}",
    response_model=StudentFeesResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fees(
    student_id: UUID,
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeesResponse:
    try:
        return await service.get_student_fees(db, current_user.tenant_id, student_id, academic_year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/assignments/{assignment_id}/discount",
    response_model=FeeAssignmentResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_assignment_discount(
    assignment_id: UUID,
    payload: DiscountIn,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeAssignmentResponse:
    try:
        return await service.update_assignment_discount(
            db, current_user.tenant_id, assignment_id, payload, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/assignments/{assignment_id}/cancel",
    response_model=FeeAssignmentResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def cancel_assignment(
    assignment_id: UUID,
    payload: CancelAssignmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeAssignmentResponse:
    try:
        return await service.cancel_assignment(
            db, current_user.tenant_id, assignment_id, payload.reason, current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Payment ---
@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.record_payment(db, current_user.tenant_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/payments",
    response_model=PaymentListResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_payments(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    student_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentListResponse:
    return await service.get_payments(
        db,
        current_user.tenant_id,
        start_date=start_date,
        end_date=end_date,
        student_id=student_id,
    )


# --- Summary ---
@router.get(
    "/summary",
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_summary(
    level: SummaryLevel = Query(SummaryLevel.school),
    class_id: Optional[UUID] = Query(None),
    student_id: Optional[UUID] = Query(None),
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await summary_service.get_fee_summary(
            db,
            current_user.tenant_id,
            level,
            class_id=class_id,
            student_id=student_id,
            academic_year=academic_year,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/summary/school",
    response_model=SchoolFeeSummary,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_school_summary(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> SchoolFeeSummary:
    return await summary_service.get_school_summary(db, current_user.tenant_id, academic_year)


@router.get(
    "/summary/comprehensive",
    response_model=ComprehensiveFeeSummary,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_comprehensive_summary(
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ComprehensiveFeeSummary:
    return await summary_service.get_comprehensive_summary(db, current_user.tenant_id, academic_year)


@router.get(
    "/summary/class/{class_id}",
    response_model=ClassFeeSummary,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_class_summary(
    class_id: UUID,
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ClassFeeSummary:
    try:
        return await summary_service.get_class_summary(db, current_user.tenant_id, class_id, academic_year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/summary/student/{student_id}",
    response_model=StudentFeeSummary,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_summary(
    student_id: UUID,
    academic_year: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeSummary:
    try:
        return await summary_service.get_student_summary(db, current_user.tenant_id, student_id, academic_year)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
