"""Fees service: fee structures, student assignments, discounts, cancellation, payments. Financial logic with audit."""

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.auth.models import User
from app.core.config import settings
from app.core.enums import FeeStatus, PaymentStatus
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import (
    FeeAssignment,
    FeeCategory,
    FeeFrequency,
    FeePayment,
    FeeReceiptCounter,
    FeeStructure,
    SchoolClass,
    Student,
    fee_structure_classes,
)
from app.db.tenant_scope import get_scoped, get_scoped_or_404, scoped_select

from .audit_service import log_fee_audit
from .due_dates import compute_due_date
from .lifecycle import ZERO, apply_assignment_state, pending_of, to_money
from .schemas import (
    AssignFeeRequest,
    CategoryRef,
    ClassRef,
    DiscountIn,
    FeeAssignmentResponse,
    FeeAssignmentWithDetails,
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    FrequencyRef,
    PaymentCreate,
    PaymentListResponse,
    PaymentResponse,
    StudentFeesResponse,
    StudentFeesTotals,
)

logger = logging.getLogger(__name__)

# Assignments with at least this much paid are never cancelled.
CANCELLABLE_PAID_LIMIT = Decimal("1")
CANCELLABLE_STATUSES = (
    FeeStatus.pending.value,
    FeeStatus.partially_paid.value,
    FeeStatus.overdue.value,
)


def _money_text(val: Decimal) -> str:
    return f"{settings.currency_symbol or ''}{to_money(val):.2f}"


# --- Fee Structure ---
def _structure_to_response(fs: FeeStructure) -> FeeStructureResponse:
    category = None
    if fs.category is not None:
        category = CategoryRef(id=fs.category.id, name=fs.category.name, code=fs.category.code)
    frequency = None
    if fs.frequency is not None:
        frequency = FrequencyRef(
            id=fs.frequency.id,
            name=fs.frequency.name,
            code=fs.frequency.code,
            months_interval=fs.frequency.months_interval,
        )
    classes = sorted(fs.classes or [], key=lambda c: (c.display_order or 0, c.name, c.section))
    return FeeStructureResponse(
        id=fs.id,
        tenant_id=fs.tenant_id,
        name=fs.name,
        category=category,
        frequency=frequency,
        classes=[
            ClassRef(id=c.id, name=c.name, section=c.section, display_name=c.display_name)
            for c in classes
        ],
        amount=to_money(fs.amount),
        academic_year=fs.academic_year,
        due_day=fs.due_day,
        description=fs.description,
        is_active=fs.is_active,
        created_at=fs.created_at,
        updated_at=fs.updated_at,
    )


async def _load_structure(db: AsyncSession, tenant_id: UUID, fee_structure_id: UUID) -> Optional[FeeStructure]:
    stmt = (
        scoped_select(FeeStructure, tenant_id)
        .where(FeeStructure.id == fee_structure_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.unique().scalar_one_or_none()


async def _get_active_category(db: AsyncSession, tenant_id: UUID, category_id: UUID) -> FeeCategory:
    fc = await get_scoped(db, FeeCategory, tenant_id, category_id)
    if not fc or not fc.is_active:
        raise ValidationError("Invalid or inactive fee category")
    return fc


async def _get_active_frequency(db: AsyncSession, tenant_id: UUID, frequency_id: UUID) -> FeeFrequency:
    ff = await get_scoped(db, FeeFrequency, tenant_id, frequency_id)
    if not ff or not ff.is_active:
        raise ValidationError("Invalid or inactive fee frequency")
    return ff


async def _get_active_classes(db: AsyncSession, tenant_id: UUID, class_ids: Iterable[UUID]) -> List[SchoolClass]:
    wanted = set(class_ids)
    if not wanted:
        return []
    result = await db.execute(
        scoped_select(SchoolClass, tenant_id).where(
            SchoolClass.id.in_(wanted),
            SchoolClass.is_active.is_(True),
        )
    )
    classes = list(result.scalars().all())
    if len(classes) != len(wanted):
        raise ValidationError("One or more classes are invalid or inactive")
    return classes


async def create_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeStructureCreate,
    changed_by: Optional[UUID] = None,
) -> FeeStructureResponse:
    await _get_active_category(db, tenant_id, payload.category_id)
    await _get_active_frequency(db, tenant_id, payload.frequency_id)
    classes = await _get_active_classes(db, tenant_id, payload.class_ids)
    fs = FeeStructure(
        tenant_id=tenant_id,
        name=payload.name.strip(),
        category_id=payload.category_id,
        frequency_id=payload.frequency_id,
        amount=payload.amount,
        academic_year=payload.academic_year,
        due_day=payload.due_day or settings.fee_default_due_day,
        description=(payload.description or "").strip() or None,
        is_active=True,
    )
    fs.classes = classes
    db.add(fs)
    await db.flush()
    await log_fee_audit(
        db, tenant_id, "fee_structures", fs.id,
        "CREATE", None,
        {
            "name": fs.name,
            "amount": str(payload.amount),
            "academic_year": fs.academic_year,
            "class_ids": sorted(str(c.id) for c in classes),
        },
        changed_by,
    )
    await db.commit()
    logger.info("Fee structure %s created for tenant %s (%d classes)", fs.id, tenant_id, len(classes))
    return _structure_to_response(await _load_structure(db, tenant_id, fs.id))


async def list_fee_structures(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
    class_id: Optional[UUID] = None,
    include_inactive: bool = False,
) -> List[FeeStructureResponse]:
    stmt = scoped_select(FeeStructure, tenant_id)
    if not include_inactive:
        stmt = stmt.where(FeeStructure.is_active.is_(True))
    if academic_year:
        stmt = stmt.where(FeeStructure.academic_year == academic_year)
    if class_id is not None:
        stmt = stmt.join(
            fee_structure_classes,
            fee_structure_classes.c.fee_structure_id == FeeStructure.id,
        ).where(fee_structure_classes.c.class_id == class_id)
    stmt = stmt.order_by(FeeStructure.created_at.desc())
    result = await db.execute(stmt)
    return [_structure_to_response(fs) for fs in result.unique().scalars().all()]


async def get_fee_structure(db: AsyncSession, tenant_id: UUID, fee_structure_id: UUID) -> FeeStructureResponse:
    fs = await _load_structure(db, tenant_id, fee_structure_id)
    if not fs:
        raise NotFoundError("Fee structure not found")
    return _structure_to_response(fs)


async def update_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
    payload: FeeStructureUpdate,
    changed_by: Optional[UUID] = None,
) -> FeeStructureResponse:
    """Partial update. Existing assignments keep the amount they were created with."""
    fs = await _load_structure(db, tenant_id, fee_structure_id)
    if not fs:
        raise NotFoundError("Fee structure not found")
    data = payload.model_dump(exclude_unset=True)
    old_value = {k: str(getattr(fs, k)) for k in data if k != "class_ids"}
    if "class_ids" in data:
        old_value["class_ids"] = sorted(str(c.id) for c in fs.classes)

    if data.get("category_id") is not None:
        await _get_active_category(db, tenant_id, data["category_id"])
        fs.category_id = data["category_id"]
    if data.get("frequency_id") is not None:
        await _get_active_frequency(db, tenant_id, data["frequency_id"])
        fs.frequency_id = data["frequency_id"]
    if data.get("class_ids") is not None:
        fs.classes = await _get_active_classes(db, tenant_id, data["class_ids"])
    if data.get("name") is not None:
        fs.name = data["name"].strip()
    if data.get("amount") is not None:
        fs.amount = data["amount"]
    if data.get("academic_year") is not None:
        fs.academic_year = data["academic_year"]
    if data.get("due_day") is not None:
        fs.due_day = data["due_day"]
    if "description" in data:
        fs.description = (data["description"] or "").strip() or None
    if data.get("is_active") is not None:
        fs.is_active = data["is_active"]

    new_value = {k: str(v) for k, v in data.items() if k != "class_ids"}
    if data.get("class_ids") is not None:
        new_value["class_ids"] = sorted(str(c) for c in data["class_ids"])
    await db.flush()
    await log_fee_audit(db, tenant_id, "fee_structures", fs.id, "UPDATE", old_value, new_value, changed_by)
    await db.commit()
    return _structure_to_response(await _load_structure(db, tenant_id, fs.id))


async def delete_fee_structure(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_id: UUID,
    changed_by: Optional[UUID] = None,
) -> None:
    """Soft delete. Assignments already created from the structure are untouched."""
    fs = await get_scoped(db, FeeStructure, tenant_id, fee_structure_id)
    if not fs or not fs.is_active:
        raise NotFoundError("Fee structure not found")
    fs.is_active = False
    await log_fee_audit(
        db, tenant_id, "fee_structures", fs.id,
        "DELETE", {"is_active": True}, {"is_active": False}, changed_by,
    )
    await db.commit()


# --- Fee Assignment ---
def _assignment_to_response(sfa: FeeAssignment) -> FeeAssignmentResponse:
    return FeeAssignmentResponse(
        id=sfa.id,
        tenant_id=sfa.tenant_id,
        student_id=sfa.student_id,
        fee_structure_id=sfa.fee_structure_id,
        academic_year=sfa.academic_year,
        total_amount=to_money(sfa.total_amount),
        discount_amount=to_money(sfa.discount_amount),
        discount_reason=sfa.discount_reason,
        final_amount=to_money(sfa.final_amount),
        paid_amount=to_money(sfa.paid_amount),
        pending_amount=pending_of(sfa),
        due_date=sfa.due_date,
        status=sfa.status,
        paid_date=sfa.paid_date,
        last_payment_id=sfa.last_payment_id,
        cancelled_at=sfa.cancelled_at,
        cancelled_by=sfa.cancelled_by,
        cancellation_reason=sfa.cancellation_reason,
        created_at=sfa.created_at,
        updated_at=sfa.updated_at,
    )


def _new_assignment(
    tenant_id: UUID,
    student_id: UUID,
    fs: FeeStructure,
    today: Optional[date] = None,
) -> FeeAssignment:
    """Snapshot the structure's amount and compute the first due date."""
    frequency_code = fs.frequency.code if fs.frequency is not None else None
    total = to_money(fs.amount)
    return FeeAssignment(
        tenant_id=tenant_id,
        student_id=student_id,
        fee_structure_id=fs.id,
        academic_year=fs.academic_year,
        total_amount=total,
        discount_amount=ZERO,
        final_amount=total,
        paid_amount=ZERO,
        due_date=compute_due_date(frequency_code, fs.due_day, today),
        status=FeeStatus.pending.value,
    )


def _apply_discount(sfa: FeeAssignment, amount, reason: Optional[str]) -> None:
    amount = to_money(amount)
    total = to_money(sfa.total_amount)
    if amount < ZERO or amount > total:
        raise ValidationError(f"Discount must be between 0 and the fee amount of {_money_text(total)}")
    sfa.discount_amount = amount
    sfa.discount_reason = (reason or "").strip() or None
    sfa.final_amount = total - amount


async def _assignment_exists(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    fee_structure_id: UUID,
    academic_year: str,
) -> bool:
    result = await db.execute(
        scoped_select(FeeAssignment, tenant_id, FeeAssignment.id).where(
            FeeAssignment.student_id == student_id,
            FeeAssignment.fee_structure_id == fee_structure_id,
            FeeAssignment.academic_year == academic_year,
        )
    )
    return result.first() is not None


def _assignment_audit_value(sfa: FeeAssignment) -> dict:
    return {
        "student_id": str(sfa.student_id),
        "fee_structure_id": str(sfa.fee_structure_id),
        "academic_year": sfa.academic_year,
        "total_amount": str(to_money(sfa.total_amount)),
        "discount_amount": str(to_money(sfa.discount_amount)),
        "final_amount": str(to_money(sfa.final_amount)),
        "due_date": sfa.due_date.isoformat(),
        "status": sfa.status,
    }


async def assign_fee(
    db: AsyncSession,
    tenant_id: UUID,
    payload: AssignFeeRequest,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> FeeAssignmentResponse:
    student = await get_scoped_or_404(db, Student, tenant_id, payload.student_id, "Student not found")
    fs = await _load_structure(db, tenant_id, payload.fee_structure_id)
    if not fs or not fs.is_active:
        raise NotFoundError("Fee structure not found")
    if await _assignment_exists(db, tenant_id, student.id, fs.id, fs.academic_year):
        raise ConflictError("Fee already assigned to student")

    sfa = _new_assignment(tenant_id, student.id, fs, today)
    discount = payload.discount or DiscountIn()
    _apply_discount(sfa, discount.amount, discount.reason)
    try:
        await apply_assignment_state(db, sfa, today)
        await log_fee_audit(
            db, tenant_id, "fee_assignments", sfa.id,
            "CREATE", None, _assignment_audit_value(sfa), changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Fee already assigned to student")
    return _assignment_to_response(sfa)


async def auto_assign_class_fees(
    db: AsyncSession,
    student_id: UUID,
    class_id: UUID,
    tenant_id: UUID,
    discount: Optional[DiscountIn] = None,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> List[FeeAssignmentResponse]:
    """
    Assign every active fee structure bound to the class. Idempotent: structures the
    student already holds for the same academic year are skipped. All or nothing.
    A discount, when given, is applied to each new assignment, capped at its total.
    """
    await get_scoped_or_404(db, Student, tenant_id, student_id, "Student not found")
    result = await db.execute(
        scoped_select(FeeStructure, tenant_id)
        .join(fee_structure_classes, fee_structure_classes.c.fee_structure_id == FeeStructure.id)
        .where(
            fee_structure_classes.c.class_id == class_id,
            FeeStructure.is_active.is_(True),
        )
        .order_by(FeeStructure.created_at)
    )
    structures = result.unique().scalars().all()

    held = await db.execute(
        scoped_select(FeeAssignment, tenant_id, FeeAssignment.fee_structure_id, FeeAssignment.academic_year)
        .where(FeeAssignment.student_id == student_id)
    )
    existing = {(row[0], row[1]) for row in held.all()}

    created: List[FeeAssignment] = []
    try:
        for fs in structures:
            if (fs.id, fs.academic_year) in existing:
                continue
            sfa = _new_assignment(tenant_id, student_id, fs, today)
            if discount is not None and discount.amount > ZERO:
                _apply_discount(sfa, min(to_money(discount.amount), to_money(sfa.total_amount)), discount.reason)
            await apply_assignment_state(db, sfa, today)
            await log_fee_audit(
                db, tenant_id, "fee_assignments", sfa.id,
                "CREATE", None, {**_assignment_audit_value(sfa), "source": "auto_assign"}, changed_by,
            )
            created.append(sfa)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Fee already assigned to student")
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Auto-assigned %d of %d class fee structures to student %s (class %s)",
        len(created), len(structures), student_id, class_id,
    )
    return [_assignment_to_response(sfa) for sfa in created]


async def get_student_fees(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> StudentFeesResponse:
    """All assignments of a student with structure details. Statuses are refreshed and saved."""
    await get_scoped_or_404(db, Student, tenant_id, student_id, "Student not found")
    stmt = (
        scoped_select(FeeAssignment, tenant_id)
        .where(FeeAssignment.student_id == student_id)
        .options(selectinload(FeeAssignment.fee_structure))
        .order_by(FeeAssignment.due_date, FeeAssignment.created_at)
    )
    if academic_year:
        stmt = stmt.where(FeeAssignment.academic_year == academic_year)
    result = await db.execute(stmt)
    rows = result.scalars().all()
    try:
        for sfa in rows:
            await apply_assignment_state(db, sfa, today)
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConflictError("Fee assignments were modified concurrently; please retry")

    totals = StudentFeesTotals()
    out = []
    for sfa in rows:
        fs = sfa.fee_structure
        out.append(
            FeeAssignmentWithDetails(
                **_assignment_to_response(sfa).model_dump(),
                fee_name=fs.name if fs else None,
                category_code=fs.category.code if fs and fs.category else None,
                category_name=fs.category.name if fs and fs.category else None,
                frequency_code=fs.frequency.code if fs and fs.frequency else None,
            )
        )
        if sfa.status == FeeStatus.cancelled.value:
            continue
        pending = pending_of(sfa)
        totals.total_amount += to_money(sfa.final_amount)
        totals.paid_amount += to_money(sfa.paid_amount)
        totals.pending_amount += pending
        if sfa.status == FeeStatus.overdue.value:
            totals.overdue_amount += pending
    return StudentFeesResponse(assignments=out, summary=totals)


async def _get_assignment_or_404(db: AsyncSession, tenant_id: UUID, assignment_id: UUID) -> FeeAssignment:
    stmt = (
        scoped_select(FeeAssignment, tenant_id)
        .where(FeeAssignment.id == assignment_id)
        .execution_options(populate_existing=True)
    )
    sfa = (await db.execute(stmt)).scalar_one_or_none()
    if not sfa:
        raise NotFoundError("Fee assignment not found")
    return sfa


async def update_assignment_discount(
    db: AsyncSession,
    tenant_id: UUID,
    assignment_id: UUID,
    payload: DiscountIn,
    changed_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> FeeAssignmentResponse:
    sfa = await _get_assignment_or_404(db, tenant_id, assignment_id)
    if sfa.status == FeeStatus.cancelled.value:
        raise ValidationError("Cannot change the discount of a cancelled fee")
    old_value = {
        "discount_amount": str(to_money(sfa.discount_amount)),
        "final_amount": str(to_money(sfa.final_amount)),
        "status": sfa.status,
    }
    _apply_discount(sfa, payload.amount, payload.reason)
    try:
        await apply_assignment_state(db, sfa, today)
    except StaleDataError:
        await db.rollback()
        raise ConflictError("Fee assignment was modified concurrently; please retry")
    await log_fee_audit(
        db, tenant_id, "fee_assignments", sfa.id,
        "DISCOUNT",
        old_value,
        {
            "discount_amount": str(to_money(sfa.discount_amount)),
            "final_amount": str(to_money(sfa.final_amount)),
            "status": sfa.status,
            "reason": sfa.discount_reason,
        },
        changed_by,
    )
    await db.commit()
    return _assignment_to_response(sfa)


def _is_cancellable(sfa: FeeAssignment) -> bool:
    return sfa.status in CANCELLABLE_STATUSES and to_money(sfa.paid_amount) < CANCELLABLE_PAID_LIMIT


async def _mark_cancelled(
    db: AsyncSession,
    sfa: FeeAssignment,
    cancelled_by: Optional[UUID],
    reason: str,
    today: Optional[date] = None,
) -> None:
    old_status = sfa.status
    sfa.status = FeeStatus.cancelled.value
    sfa.cancelled_at = datetime.now(timezone.utc)
    sfa.cancelled_by = cancelled_by
    sfa.cancellation_reason = reason
    await apply_assignment_state(db, sfa, today)
    await log_fee_audit(
        db, sfa.tenant_id, "fee_assignments", sfa.id,
        "CANCEL", {"status": old_status}, {"status": sfa.status, "reason": reason}, cancelled_by,
    )


async def cancel_assignment(
    db: AsyncSession,
    tenant_id: UUID,
    assignment_id: UUID,
    reason: str,
    cancelled_by: Optional[UUID] = None,
) -> FeeAssignmentResponse:
    sfa = await _get_assignment_or_404(db, tenant_id, assignment_id)
    if sfa.status == FeeStatus.cancelled.value:
        raise ValidationError("Fee assignment is already cancelled")
    if not _is_cancellable(sfa):
        raise ValidationError("Cannot cancel a fee that has been paid")
    try:
        await _mark_cancelled(db, sfa, cancelled_by, reason.strip())
    except StaleDataError:
        await db.rollback()
        raise ConflictError("Fee assignment was modified concurrently; please retry")
    await db.commit()
    return _assignment_to_response(sfa)


async def cancel_unpaid_assignments(
    db: AsyncSession,
    tenant_id: UUID,
    student_ids: List[UUID],
    reason: str,
    cancelled_by: Optional[UUID] = None,
) -> int:
    """Cancel every unpaid open assignment of the given students. Caller commits."""
    if not student_ids:
        return 0
    result = await db.execute(
        scoped_select(FeeAssignment, tenant_id).where(
            FeeAssignment.student_id.in_(student_ids),
            FeeAssignment.status.in_(CANCELLABLE_STATUSES),
            FeeAssignment.paid_amount < CANCELLABLE_PAID_LIMIT,
        )
    )
    count = 0
    for sfa in result.scalars().all():
        await _mark_cancelled(db, sfa, cancelled_by, reason)
        count += 1
    return count


# --- Payment ---
def _payment_to_response(
    pt: FeePayment,
    student_name: Optional[str] = None,
    collected_by_name: Optional[str] = None,
    sfa: Optional[FeeAssignment] = None,
) -> PaymentResponse:
    return PaymentResponse(
        id=pt.id,
        tenant_id=pt.tenant_id,
        student_id=pt.student_id,
        fee_assignment_id=pt.fee_assignment_id,
        amount=to_money(pt.amount),
        payment_date=pt.payment_date,
        payment_method=pt.payment_method,
        transaction_id=pt.transaction_id,
        receipt_number=pt.receipt_number,
        collected_by=pt.collected_by,
        remarks=pt.remarks,
        status=pt.status,
        created_at=pt.created_at,
        student_name=student_name,
        collected_by_name=collected_by_name,
        assignment_status=sfa.status if sfa is not None else None,
        assignment_paid_amount=to_money(sfa.paid_amount) if sfa is not None else None,
    )


async def _next_receipt_number(db: AsyncSession, tenant_id: UUID, now: datetime) -> str:
    """Increment the tenant's receipt counter inside the current transaction."""
    result = await db.execute(
        update(FeeReceiptCounter)
        .where(FeeReceiptCounter.tenant_id == tenant_id)
        .values(last_value=FeeReceiptCounter.last_value + 1)
        .returning(FeeReceiptCounter.last_value)
        .execution_options(synchronize_session=False)
    )
    seq = result.scalar_one_or_none()
    if seq is None:
        # First receipt for this tenant; a concurrent first insert fails on the primary key and is retried.
        seq = 1
        db.add(FeeReceiptCounter(tenant_id=tenant_id, last_value=seq))
        await db.flush()
    return f"RCP{now.year}{seq:06d}"


async def _record_payment_once(
    db: AsyncSession,
    tenant_id: UUID,
    payload: PaymentCreate,
    collected_by: Optional[UUID],
    today: Optional[date],
) -> PaymentResponse:
    sfa = await _get_assignment_or_404(db, tenant_id, payload.fee_assignment_id)
    if payload.student_id is not None and sfa.student_id != payload.student_id:
        raise NotFoundError("Fee assignment not found")
    if sfa.status == FeeStatus.cancelled.value:
        raise ValidationError("Cannot record payment for a cancelled fee")
    remaining = pending_of(sfa)
    if remaining <= ZERO:
        raise ValidationError("Fee is already fully paid")
    if payload.amount > remaining:
        raise ValidationError(f"Payment amount cannot exceed remaining amount of {_money_text(remaining)}")

    now = datetime.now(timezone.utc)
    payment_date = payload.payment_date or now
    receipt_number = await _next_receipt_number(db, tenant_id, now)
    pt = FeePayment(
        tenant_id=tenant_id,
        student_id=sfa.student_id,
        fee_assignment_id=sfa.id,
        amount=payload.amount,
        payment_date=payment_date,
        payment_method=payload.payment_method.value,
        transaction_id=(payload.transaction_id or "").strip() or None,
        receipt_number=receipt_number,
        collected_by=collected_by,
        remarks=(payload.remarks or "").strip() or None,
        status=PaymentStatus.completed.value,
    )
    db.add(pt)
    await db.flush()

    old_status = sfa.status
    old_paid = to_money(sfa.paid_amount)
    sfa.paid_amount = old_paid + payload.amount
    # paid_date records when the money was booked; payment_date may be backdated.
    sfa.paid_date = now
    sfa.last_payment_id = pt.id
    await apply_assignment_state(db, sfa, today)

    await log_fee_audit(
        db, tenant_id, "fee_payments", pt.id,
        "CREATE",
        None,
        {
            "amount": str(payload.amount),
            "payment_method": pt.payment_method,
            "receipt_number": receipt_number,
            "fee_assignment_id": str(sfa.id),
        },
        collected_by,
    )
    await log_fee_audit(
        db, tenant_id, "fee_assignments", sfa.id,
        "PAYMENT",
        {"paid_amount": str(old_paid), "status": old_status},
        {"paid_amount": str(to_money(sfa.paid_amount)), "status": sfa.status},
        collected_by,
    )
    await db.commit()
    return _payment_to_response(pt, sfa=sfa)


async def record_payment(
    db: AsyncSession,
    tenant_id: UUID,
    payload: PaymentCreate,
    collected_by: Optional[UUID] = None,
    today: Optional[date] = None,
) -> PaymentResponse:
    """
    Record a payment, issue a receipt number, and move the assignment's paid amount and status.
    A concurrent write to the same assignment (stale version) or receipt counter retries the
    whole payment from a fresh read.
    """
    attempts = settings.fee_payment_max_retries
    for attempt in range(1, attempts + 1):
        try:
            response = await _record_payment_once(db, tenant_id, payload, collected_by, today)
        except (StaleDataError, IntegrityError) as exc:
            await db.rollback()
            logger.warning(
                "Payment for assignment %s hit a concurrent update (attempt %d/%d): %s",
                payload.fee_assignment_id, attempt, attempts, exc.__class__.__name__,
            )
            continue
        logger.info(
            "Payment %s recorded for assignment %s: %s",
            response.receipt_number, payload.fee_assignment_id, response.amount,
        )
        return response
    raise ConflictError("Payment could not be recorded because the fee was updated concurrently; please retry")


async def get_payments(
    db: AsyncSession,
    tenant_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    student_id: Optional[UUID] = None,
) -> PaymentListResponse:
    stmt = (
        scoped_select(FeePayment, tenant_id, FeePayment, Student.first_name, Student.last_name, User.full_name)
        .outerjoin(Student, Student.id == FeePayment.student_id)
        .outerjoin(User, User.id == FeePayment.collected_by)
    )
    if start_date is not None:
        stmt = stmt.where(FeePayment.payment_date >= datetime.combine(start_date, time.min, tzinfo=timezone.utc))
    if end_date is not None:
        end_exclusive = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        stmt = stmt.where(FeePayment.payment_date < end_exclusive)
    if student_id is not None:
        stmt = stmt.where(FeePayment.student_id == student_id)
    stmt = stmt.order_by(FeePayment.payment_date.desc(), FeePayment.created_at.desc())
    result = await db.execute(stmt)

    data = []
    total = ZERO
    for pt, first_name, last_name, collector in result.all():
        student_name = f"{first_name or ''} {last_name or ''}".strip() or None
        data.append(_payment_to_response(pt, student_name=student_name, collected_by_name=collector))
        total += to_money(pt.amount)
    return PaymentListResponse(count=len(data), total_amount=total, data=data)


async def count_open_assignments(db: AsyncSession, tenant_id: UUID, student_ids: List[UUID]) -> int:
    """Pending or partially paid assignments of the given students."""
    if not student_ids:
        return 0
    result = await db.execute(
        scoped_select(FeeAssignment, tenant_id, func.count(FeeAssignment.id)).where(
            FeeAssignment.student_id.in_(student_ids),
            FeeAssignment.status.in_((FeeStatus.pending.value, FeeStatus.partially_paid.value)),
        )
    )
    return result.scalar_one()
