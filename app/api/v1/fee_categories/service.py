"""Fee category service layer: defaults, CRUD with system-row protection, dropdown."""

import re
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import CatalogType
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import FeeCategory, FeeStructure
from app.db.tenant_scope import get_scoped, scoped_select

from .schemas import (
    FeeCategoryCreate,
    FeeCategoryDropdownItem,
    FeeCategoryResponse,
    FeeCategoryUpdate,
)

DEFAULT_CATEGORIES = (
    {"name": "Tuition Fee", "code": "TUITION", "display_order": 1},
    {"name": "Transport Fee", "code": "TRANSPORT", "display_order": 2},
    {"name": "Library Fee", "code": "LIBRARY", "display_order": 3},
    {"name": "Laboratory Fee", "code": "LABORATORY", "display_order": 4},
    {"name": "Sports Fee", "code": "SPORTS", "display_order": 5},
    {"name": "Exam Fee", "code": "EXAM", "display_order": 6},
    {"name": "Admission Fee", "code": "ADMISSION", "display_order": 7},
    {"name": "Other", "code": "OTHER", "display_order": 999},
)

_CODE_RE = re.compile(r"^[A-Z_]+$")


def derive_category_code(name: str) -> str:
    """"Bus Transport" -> "BUS_TRANSPORT"."""
    code = re.sub(r"\s+", "_", name.strip().upper())
    return re.sub(r"[^A-Z_]", "", code)


def _normalize_code(code: Optional[str], name: str) -> str:
    if code and code.strip():
        out = code.strip().upper()
        if not _CODE_RE.match(out):
            raise ValidationError("Code must contain only uppercase letters and underscores")
        return out
    out = derive_category_code(name)
    if not out:
        raise ValidationError("Code must be provided or generated from name")
    return out


def _to_response(fc: FeeCategory, usage_count: int = 0) -> FeeCategoryResponse:
    return FeeCategoryResponse(
        id=fc.id,
        tenant_id=fc.tenant_id,
        name=fc.name,
        code=fc.code,
        description=fc.description,
        is_system=fc.is_system,
        display_order=fc.display_order,
        is_active=fc.is_active,
        usage_count=usage_count,
        created_at=fc.created_at,
        updated_at=fc.updated_at,
    )


async def _usage_counts(db: AsyncSession, tenant_id: UUID) -> Dict[UUID, int]:
    stmt = (
        scoped_select(FeeStructure, tenant_id, FeeStructure.category_id, func.count(FeeStructure.id))
        .group_by(FeeStructure.category_id)
    )
    result = await db.execute(stmt)
    return {row[0]: row[1] for row in result.all()}


async def initialize_default_categories(db: AsyncSession, tenant_id: UUID) -> List[FeeCategoryResponse]:
    """Create the system categories for a tenant in one transaction."""
    existing = await db.execute(
        scoped_select(FeeCategory, tenant_id, func.count(FeeCategory.id)).where(FeeCategory.is_system.is_(True))
    )
    if existing.scalar_one() > 0:
        raise ConflictError("Default categories already initialized")
    created = []
    try:
        for item in DEFAULT_CATEGORIES:
            fc = FeeCategory(tenant_id=tenant_id, is_system=True, is_active=True, **item)
            db.add(fc)
            created.append(fc)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A category with a default name or code already exists")
    for fc in created:
        await db.refresh(fc)
    return [_to_response(fc) for fc in created]


async def list_fee_categories(
    db: AsyncSession,
    tenant_id: UUID,
    active: Optional[bool] = None,
    catalog_type: Optional[CatalogType] = None,
) -> List[FeeCategoryResponse]:
    stmt = scoped_select(FeeCategory, tenant_id)
    if active is not None:
        stmt = stmt.where(FeeCategory.is_active.is_(active))
    if catalog_type == CatalogType.system:
        stmt = stmt.where(FeeCategory.is_system.is_(True))
    elif catalog_type == CatalogType.custom:
        stmt = stmt.where(FeeCategory.is_system.is_(False))
    stmt = stmt.order_by(FeeCategory.display_order, FeeCategory.name)
    result = await db.execute(stmt)
    usage = await _usage_counts(db, tenant_id)
    return [_to_response(fc, usage.get(fc.id, 0)) for fc in result.scalars().all()]


async def create_fee_category(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeCategoryCreate,
) -> FeeCategoryResponse:
    name = payload.name.strip()
    code = _normalize_code(payload.code, name)
    existing = await db.execute(
        scoped_select(FeeCategory, tenant_id, FeeCategory.id).where(
            or_(func.lower(FeeCategory.name) == name.lower(), FeeCategory.code == code)
        )
    )
    if existing.first() is not None:
        raise ConflictError("Category with this name or code already exists")
    try:
        fc = FeeCategory(
            tenant_id=tenant_id,
            name=name,
            code=code,
            description=(payload.description or "").strip() or None,
            display_order=payload.display_order or 999,
            is_system=False,
            is_active=True,
        )
        db.add(fc)
        await db.commit()
        await db.refresh(fc)
        return _to_response(fc)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Category with this name or code already exists")


async def update_fee_category(
    db: AsyncSession,
    tenant_id: UUID,
    category_id: UUID,
    payload: FeeCategoryUpdate,
) -> FeeCategoryResponse:
    fc = await get_scoped(db, FeeCategory, tenant_id, category_id)
    if not fc:
        raise NotFoundError("Category not found")
    if fc.is_system and (
        payload.name is not None or payload.description is not None or payload.display_order is not None
    ):
        raise ValidationError("System categories can only be activated/deactivated")
    if payload.name is not None and payload.name.strip() != fc.name:
        name = payload.name.strip()
        clash = await db.execute(
            scoped_select(FeeCategory, tenant_id, FeeCategory.id).where(
                func.lower(FeeCategory.name) == name.lower(),
                FeeCategory.id != fc.id,
            )
        )
        if clash.first() is not None:
            raise ConflictError("Category with this name already exists")
        fc.name = name
    if payload.description is not None:
        fc.description = payload.description.strip() or None
    if payload.display_order is not None:
        fc.display_order = payload.display_order
    if payload.is_active is not None:
        fc.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(fc)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Fee category update conflict")
    usage = await _usage_counts(db, tenant_id)
    return _to_response(fc, usage.get(fc.id, 0))


async def delete_fee_category(db: AsyncSession, tenant_id: UUID, category_id: UUID) -> None:
    fc = await get_scoped(db, FeeCategory, tenant_id, category_id, for_update=True)
    if not fc:
        raise NotFoundError("Category not found")
    if fc.is_system:
        raise ValidationError("System categories cannot be deleted")
    count = (
        await db.execute(
            scoped_select(FeeStructure, tenant_id, func.count(FeeStructure.id)).where(
                FeeStructure.category_id == fc.id
            )
        )
    ).scalar_one()
    if count > 0:
        raise ValidationError(f"This category is being used by {count} fee structure(s)")
    await db.delete(fc)
    await db.commit()


async def get_categories_dropdown(db: AsyncSession, tenant_id: UUID) -> List[FeeCategoryDropdownItem]:
    stmt = (
        scoped_select(FeeCategory, tenant_id)
        .where(FeeCategory.is_active.is_(True))
        .order_by(FeeCategory.display_order, FeeCategory.name)
    )
    result = await db.execute(stmt)
    return [
        FeeCategoryDropdownItem(label=fc.name, value=fc.code, order=fc.display_order)
        for fc in result.scalars().all()
    ]
