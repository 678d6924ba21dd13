"""
Fee summaries at school, class and student level. Read-only: statuses are derived
for reporting and never written back.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.core.config import settings
from app.core.enums import FeeStatus, SummaryLevel
from app.core.exceptions import ValidationError
from app.core.models import FeeAssignment, FeePayment, FeeStructure, SchoolClass, Student
from app.db.tenant_scope import get_scoped_or_404, scoped_select

from .lifecycle import ZERO, AssignmentSnapshot, derive_status, pending_of, to_money
from .schemas import (
    ClassBuckets,
    ClassFeeSummary,
    ComprehensiveFeeSummary,
    PaymentHistoryItem,
    SchoolFeeSummary,
    StudentBuckets,
    StudentFeeDetail,
    StudentFeeSummary,
    SummaryBuckets,
)

UNKNOWN_CATEGORY = "other"
UNKNOWN_FEE = "Unknown Fee"
UNKNOWN_CLASS = "Unknown Class"
UNKNOWN_COLLECTOR = "Unknown"
UNKNOWN_FREQUENCY = "unknown"


def collection_rate(collected: Decimal, expected: Decimal) -> Decimal:
    """collected / expected as a percentage, 2 decimals. 0 when nothing is expected."""
    if expected <= ZERO:
        return Decimal("0")
    return (collected * 100 / expected).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass
class _Totals:
    expected: Decimal = ZERO
    collected: Decimal = ZERO
    pending: Decimal = ZERO
    overdue: Decimal = ZERO
    students: Set[UUID] = field(default_factory=set)

    def add(self, line: "_Line") -> None:
        self.expected += line.final_amount
        self.collected += line.paid_amount
        self.pending += line.pending_amount
        self.overdue += line.overdue_amount
        self.students.add(line.student.id)

    def buckets(self) -> SummaryBuckets:
        return SummaryBuckets(
            expected=self.expected,
            collected=self.collected,
            pending=self.pending,
            overdue=self.overdue,
        )


@dataclass
class _Line:
    """One non-cancelled assignment with its derived reporting state."""

    assignment: FeeAssignment
    student: Student
    structure: Optional[FeeStructure]
    status: FeeStatus
    final_amount: Decimal
    paid_amount: Decimal
    balance: Decimal
    # Balance is routed to exactly one of pending_amount and overdue_amount.
    pending_amount: Decimal
    overdue_amount: Decimal

    @property
    def category_key(self) -> str:
        if self.structure is not None and self.structure.category is not None:
            return self.structure.category.code
        return UNKNOWN_CATEGORY

    @property
    def fee_name(self) -> str:
        return self.structure.name if self.structure is not None else UNKNOWN_FEE

    @property
    def frequency_code(self) -> str:
        if self.structure is not None and self.structure.frequency is not None:
            return self.structure.frequency.code
        return UNKNOWN_FREQUENCY


async def _load_lines(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
    student_ids: Optional[List[UUID]] = None,
    today: Optional[date] = None,
) -> List[_Line]:
    """Non-cancelled assignments whose student resolves in the tenant."""
    stmt = (
        scoped_select(FeeAssignment, tenant_id, FeeAssignment, Student, FeeStructure)
        .join(Student, Student.id == FeeAssignment.student_id)
        .outerjoin(FeeStructure, FeeStructure.id == FeeAssignment.fee_structure_id)
        .where(
            Student.tenant_id == tenant_id,
            FeeAssignment.status != FeeStatus.cancelled.value,
        )
        .order_by(FeeAssignment.due_date, FeeAssignment.created_at)
    )
    if academic_year:
        stmt = stmt.where(FeeAssignment.academic_year == academic_year)
    if student_ids is not None:
        if not student_ids:
            return []
        stmt = stmt.where(FeeAssignment.student_id.in_(student_ids))
    result = await db.execute(stmt)

    lines = []
    for sfa, student, fs in result.unique().all():
        status = derive_status(AssignmentSnapshot.of(sfa), today)
        balance = pending_of(sfa)
        overdue = status == FeeStatus.overdue
        lines.append(
            _Line(
                assignment=sfa,
                student=student,
                structure=fs,
                status=status,
                final_amount=to_money(sfa.final_amount),
                paid_amount=to_money(sfa.paid_amount),
                balance=balance,
                pending_amount=ZERO if overdue else balance,
                overdue_amount=balance if overdue else ZERO,
            )
        )
    return lines


def _by_category(lines: List[_Line]) -> Dict[str, SummaryBuckets]:
    groups: Dict[str, _Totals] = {}
    for line in lines:
        groups.setdefault(line.category_key, _Totals()).add(line)
    return {key: t.buckets() for key, t in groups.items()}


async def _payment_history(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: Optional[UUID] = None,
    academic_year: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[PaymentHistoryItem]:
    stmt = (
        scoped_select(FeePayment, tenant_id, FeePayment, Student.first_name, Student.last_name, User.full_name)
        .outerjoin(Student, Student.id == FeePayment.student_id)
        .outerjoin(User, User.id == FeePayment.collected_by)
    )
    if student_id is not None:
        stmt = stmt.where(FeePayment.student_id == student_id)
    if academic_year:
        stmt = stmt.join(FeeAssignment, FeeAssignment.id == FeePayment.fee_assignment_id).where(
            FeeAssignment.academic_year == academic_year
        )
    stmt = stmt.order_by(FeePayment.payment_date.desc(), FeePayment.created_at.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [
        PaymentHistoryItem(
            payment_id=pt.id,
            amount=to_money(pt.amount),
            date=pt.payment_date,
            method=pt.payment_method,
            receipt_number=pt.receipt_number,
            student_name=f"{first_name or ''} {last_name or ''}".strip() or None,
            collected_by=collector or UNKNOWN_COLLECTOR,
        )
        for pt, first_name, last_name, collector in result.all()
    ]


async def get_school_summary(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> SchoolFeeSummary:
    lines = await _load_lines(db, tenant_id, academic_year, today=today)
    class_result = await db.execute(scoped_select(SchoolClass, tenant_id))
    class_names = {c.id: c.display_name for c in class_result.scalars().all()}

    totals = _Totals()
    per_class: Dict[str, _Totals] = {}
    for line in lines:
        totals.add(line)
        name = class_names.get(line.student.class_id, UNKNOWN_CLASS)
        per_class.setdefault(name, _Totals()).add(line)

    return SchoolFeeSummary(
        academic_year=academic_year,
        total_students=len(totals.students),
        total_assignments=len(lines),
        total_expected=totals.expected,
        total_collected=totals.collected,
        total_pending=totals.pending,
        total_overdue=totals.overdue,
        collection_rate=collection_rate(totals.collected, totals.expected),
        class_wise_summary={
            name: ClassBuckets(**t.buckets().model_dump(), student_count=len(t.students))
            for name, t in per_class.items()
        },
        category_wise_summary=_by_category(lines),
        recent_payments=await _payment_history(
            db, tenant_id, academic_year=academic_year, limit=settings.fee_recent_payments_limit
        ),
    )


async def get_class_summary(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> ClassFeeSummary:
    school_class = await get_scoped_or_404(db, SchoolClass, tenant_id, class_id, "Class not found")
    student_result = await db.execute(
        scoped_select(Student, tenant_id)
        .where(Student.class_id == class_id, Student.is_active.is_(True))
        .order_by(Student.roll_number, Student.first_name)
    )
    students = list(student_result.scalars().all())
    lines = await _load_lines(db, tenant_id, academic_year, [s.id for s in students], today)

    totals = _Totals()
    per_student: Dict[UUID, _Totals] = {s.id: _Totals() for s in students}
    for line in lines:
        totals.add(line)
        per_student[line.student.id].add(line)

    return ClassFeeSummary(
        academic_year=academic_year,
        class_id=school_class.id,
        class_name=school_class.display_name,
        total_students=len(students),
        total_assignments=len(lines),
        total_expected=totals.expected,
        total_collected=totals.collected,
        total_pending=totals.pending,
        total_overdue=totals.overdue,
        collection_rate=collection_rate(totals.collected, totals.expected),
        students=[
            StudentBuckets(
                **per_student[s.id].buckets().model_dump(),
                student_id=s.id,
                name=s.full_name,
                roll_number=s.roll_number,
            )
            for s in students
        ],
        category_wise_summary=_by_category(lines),
    )


async def get_student_summary(
    db: AsyncSession,
    tenant_id: UUID,
    student_id: UUID,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> StudentFeeSummary:
    student = await get_scoped_or_404(db, Student, tenant_id, student_id, "Student not found")
    class_name = UNKNOWN_CLASS
    if student.class_id is not None:
        class_result = await db.execute(
            scoped_select(SchoolClass, tenant_id).where(SchoolClass.id == student.class_id)
        )
        school_class = class_result.scalar_one_or_none()
        if school_class is not None:
            class_name = school_class.display_name

    lines = await _load_lines(db, tenant_id, academic_year, [student.id], today)
    summary = StudentFeeSummary(
        academic_year=academic_year,
        student_id=student.id,
        student_name=student.full_name,
        student_roll_number=student.roll_number,
        class_name=class_name,
    )
    if not lines:
        summary.message = "No fee assignments found for this student"
        return summary

    totals = _Totals()
    for line in lines:
        totals.add(line)
    summary.total_expected = totals.expected
    summary.total_collected = totals.collected
    summary.total_pending = totals.pending
    summary.total_overdue = totals.overdue
    summary.collection_rate = collection_rate(totals.collected, totals.expected)
    summary.category_wise_summary = _by_category(lines)
    summary.fee_details = [
        StudentFeeDetail(
            assignment_id=line.assignment.id,
            fee_name=line.fee_name,
            category=line.category_key,
            frequency=line.frequency_code,
            total_amount=to_money(line.assignment.total_amount),
            discount=to_money(line.assignment.discount_amount),
            paid_amount=line.paid_amount,
            pending_amount=line.balance,
            overdue_amount=line.overdue_amount if line.status == FeeStatus.overdue else None,
            due_date=line.assignment.due_date,
            status=line.status,
        )
        for line in lines
    ]
    summary.payment_history = await _payment_history(db, tenant_id, student.id, academic_year)
    return summary


async def get_comprehensive_summary(
    db: AsyncSession,
    tenant_id: UUID,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> ComprehensiveFeeSummary:
    school = await get_school_summary(db, tenant_id, academic_year, today)
    class_result = await db.execute(
        scoped_select(SchoolClass, tenant_id)
        .where(SchoolClass.is_active.is_(True))
        .order_by(SchoolClass.display_order, SchoolClass.name, SchoolClass.section)
    )
    classes = [
        await get_class_summary(db, tenant_id, c.id, academic_year, today)
        for c in class_result.scalars().all()
    ]
    return ComprehensiveFeeSummary(academic_year=academic_year, school=school, classes=classes)


async def get_fee_summary(
    db: AsyncSession,
    tenant_id: UUID,
    level: SummaryLevel,
    class_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
):
    """Dispatch on summary level."""
    if level == SummaryLevel.school:
        return await get_school_summary(db, tenant_id, academic_year, today)
    if level == SummaryLevel.class_:
        if class_id is None:
            raise ValidationError("class_id is required for a class summary")
        return await get_class_summary(db, tenant_id, class_id, academic_year, today)
    if level == SummaryLevel.student:
        if student_id is None:
            raise ValidationError("student_id is required for a student summary")
        return await get_student_summary(db, tenant_id, student_id, academic_year, today)
    return await get_comprehensive_summary(db, tenant_id, academic_year, today)
