"""Student enrollment. Creating a student assigns the class's fees on a best-effort basis."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.classes.service import get_class_by_id_for_tenant
from app.api.v1.fees.service import auto_assign_class_fees
from app.core.exceptions import ConflictError, ValidationError
from app.core.models import Student
from app.db.tenant_scope import get_scoped_or_404, scoped_select

from .schemas import StudentCreate, StudentCreateResponse, StudentResponse

logger = logging.getLogger(__name__)


def _student_to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        tenant_id=s.tenant_id,
        class_id=s.class_id,
        first_name=s.first_name,
        last_name=s.last_name,
        full_name=s.full_name,
        roll_number=s.roll_number,
        admission_number=s.admission_number,
        date_of_birth=s.date_of_birth,
        parent_id=s.parent_id,
        is_active=s.is_active,
        created_at=s.created_at,
    )


async def create_student(
    db: AsyncSession,
    tenant_id: UUID,
    payload: StudentCreate,
    created_by: Optional[UUID] = None,
) -> StudentCreateResponse:
    school_class = await get_class_by_id_for_tenant(db, tenant_id, payload.class_id)
    if not school_class:
        raise ValidationError("Invalid class")
    student = Student(
        tenant_id=tenant_id,
        class_id=school_class.id,
        first_name=payload.first_name.strip(),
        last_name=(payload.last_name or "").strip(),
        roll_number=(payload.roll_number or "").strip() or None,
        admission_number=(payload.admission_number or "").strip() or None,
        date_of_birth=payload.date_of_birth,
        parent_id=payload.parent_id,
        is_active=True,
    )
    try:
        db.add(student)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Roll number already exists in this class")

    response = StudentCreateResponse(**_student_to_response(student).model_dump())
    student_id, class_id = student.id, school_class.id
    try:
        response.assigned_fees = await auto_assign_class_fees(
            db,
            student_id,
            class_id,
            tenant_id,
            discount=payload.fee_discount,
            changed_by=created_by,
        )
    except Exception:
        # Enrollment stands; fees can be assigned again through auto-assign.
        await db.rollback()
        logger.exception("Fee auto-assignment failed for student %s in class %s", student_id, class_id)
        response.fee_assignment_error = "Fee auto-assignment failed; assign fees manually"
    return response


async def list_students(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: Optional[UUID] = None,
    active_only: bool = True,
) -> List[StudentResponse]:
    stmt = scoped_select(Student, tenant_id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    if active_only:
        stmt = stmt.where(Student.is_active.is_(True))
    stmt = stmt.order_by(Student.roll_number, Student.first_name, Student.last_name)
    result = await db.execute(stmt)
    return [_student_to_response(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, tenant_id: UUID, student_id: UUID) -> StudentResponse:
    student = await get_scoped_or_404(db, Student, tenant_id, student_id, "Student not found")
    return _student_to_response(student)
