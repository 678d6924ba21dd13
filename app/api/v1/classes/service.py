import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.service import cancel_unpaid_assignments, count_open_assignments
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import FeeStructure, SchoolClass, Student
from app.db.tenant_scope import scoped_select

from .schemas import ClassCreate, ClassDeleteResponse, ClassResponse, ClassUpdate

logger = logging.getLogger(__name__)


def _class_to_response(c: SchoolClass) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        tenant_id=c.tenant_id,
        name=c.name,
        section=c.section,
        display_name=c.display_name,
        display_order=c.display_order,
        is_active=c.is_active,
        fee_structure_ids=sorted((fs.id for fs in c.fee_structures), key=str),
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def _load_class(db: AsyncSession, tenant_id: UUID, class_id: UUID) -> Optional[SchoolClass]:
    stmt = (
        scoped_select(SchoolClass, tenant_id)
        .where(SchoolClass.id == class_id, SchoolClass.deleted_at.is_(None))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _get_active_structures(
    db: AsyncSession,
    tenant_id: UUID,
    fee_structure_ids: Iterable[UUID],
) -> List[FeeStructure]:
    wanted = set(fee_structure_ids)
    if not wanted:
        return []
    result = await db.execute(
        scoped_select(FeeStructure, tenant_id).where(
            FeeStructure.id.in_(wanted),
            FeeStructure.is_active.is_(True),
        )
    )
    structures = list(result.unique().scalars().all())
    if len(structures) != len(wanted):
        raise ValidationError("One or more fee structures are invalid or inactive")
    return structures


async def create_class(
    db: AsyncSession,
    tenant_id: UUID,
    payload: ClassCreate,
) -> ClassResponse:
    """Create the class and bind it to its fee structures in one transaction."""
    structures = await _get_active_structures(db, tenant_id, payload.fee_structure_ids)
    try:
        obj = SchoolClass(
            tenant_id=tenant_id,
            name=payload.name.strip(),
            section=payload.section.strip(),
            display_order=payload.display_order,
            is_active=True,
        )
        obj.fee_structures = structures
        db.add(obj)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Class with this name and section already exists")
    return _class_to_response(await _load_class(db, tenant_id, obj.id))


async def list_classes(
    db: AsyncSession,
    tenant_id: UUID,
    active_only: bool = True,
) -> List[ClassResponse]:
    stmt = scoped_select(SchoolClass, tenant_id).where(SchoolClass.deleted_at.is_(None))
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = stmt.order_by(SchoolClass.display_order.nullslast(), SchoolClass.name, SchoolClass.section)
    result = await db.execute(stmt)
    rows = result.scalars().all()
    return [_class_to_response(c) for c in rows]


async def get_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
) -> ClassResponse:
    obj = await _load_class(db, tenant_id, class_id)
    if not obj:
        raise NotFoundError("Class not found")
    return _class_to_response(obj)


async def update_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    payload: ClassUpdate,
) -> ClassResponse:
    obj = await _load_class(db, tenant_id, class_id)
    if not obj:
        raise NotFoundError("Class not found")
    if payload.fee_structure_ids is not None:
        obj.fee_structures = await _get_active_structures(db, tenant_id, payload.fee_structure_ids)
    if payload.name is not None:
        obj.name = payload.name.strip()
    if payload.section is not None:
        obj.section = payload.section.strip()
    if payload.display_order is not None:
        obj.display_order = payload.display_order
    if payload.is_active is not None:
        obj.is_active = payload.is_active
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Class with this name and section already exists")
    return _class_to_response(await _load_class(db, tenant_id, class_id))


async def update_class_fee_structures(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    fee_structure_ids: List[UUID],
) -> ClassResponse:
    """
    Replace the class's fee structures. The class leaves every structure not listed and
    joins every listed one, atomically. Existing student assignments are untouched.
    """
    obj = await _load_class(db, tenant_id, class_id)
    if not obj:
        raise NotFoundError("Class not found")
    structures = await _get_active_structures(db, tenant_id, fee_structure_ids)
    old_ids = {fs.id for fs in obj.fee_structures}
    obj.fee_structures = structures
    await db.commit()
    new_ids = {fs.id for fs in structures}
    logger.info(
        "Class %s fee structures rebound: %d removed, %d added",
        class_id, len(old_ids - new_ids), len(new_ids - old_ids),
    )
    return _class_to_response(await _load_class(db, tenant_id, class_id))


async def delete_class(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    deleted_by: Optional[UUID] = None,
) -> ClassDeleteResponse:
    """
    Soft delete. Refused while active students are enrolled or any student of the class
    has a pending or partially paid fee. Otherwise the class leaves its fee structures and
    its students' unpaid open fees are cancelled.
    """
    obj = await _load_class(db, tenant_id, class_id)
    if not obj:
        raise NotFoundError("Class not found")

    active_students = (
        await db.execute(
            scoped_select(Student, tenant_id, func.count(Student.id)).where(
                Student.class_id == class_id,
                Student.is_active.is_(True),
            )
        )
    ).scalar_one()
    if active_students:
        raise ValidationError(
            f"Cannot delete class with {active_students} active students. Please transfer or deactivate students first."
        )

    student_ids = list(
        (
            await db.execute(scoped_select(Student, tenant_id, Student.id).where(Student.class_id == class_id))
        ).scalars().all()
    )
    open_fees = await count_open_assignments(db, tenant_id, student_ids)
    if open_fees:
        raise ValidationError(
            f"Cannot delete class with {open_fees} pending fee payments. Please clear all dues first."
        )

    display_name = obj.display_name
    obj.fee_structures = []
    cancelled = await cancel_unpaid_assignments(
        db, tenant_id, student_ids, f"Class {display_name} was deleted", deleted_by
    )
    obj.is_active = False
    obj.deleted_at = datetime.now(timezone.utc)
    obj.deleted_by = deleted_by
    await db.commit()
    logger.info("Class %s deleted; %d unpaid fee assignments cancelled", class_id, cancelled)
    return ClassDeleteResponse(
        message=f"Class {display_name} deleted successfully",
        cancelled_assignments=cancelled,
    )


async def get_class_by_id_for_tenant(
    db: AsyncSession,
    tenant_id: UUID,
    class_id: UUID,
    active_only: bool = True,
) -> Optional[SchoolClass]:
    stmt = scoped_select(SchoolClass, tenant_id).where(
        SchoolClass.id == class_id,
        SchoolClass.deleted_at.is_(None),
    )
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()
