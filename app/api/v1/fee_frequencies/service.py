"""Fee frequency service layer. Mirrors fee categories; adds months_interval validation."""

import re
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import CatalogType
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import FeeFrequency, FeeStructure
from app.db.tenant_scope import get_scoped, scoped_select

from .schemas import (
    FeeFrequencyCreate,
    FeeFrequencyDropdownItem,
    FeeFrequencyResponse,
    FeeFrequencyUpdate,
)

DEFAULT_FREQUENCIES = (
    {"name": "One Time", "code": "one-time", "months_interval": 0, "display_order": 1},
    {"name": "Monthly", "code": "monthly", "months_interval": 1, "display_order": 2},
    {"name": "Quarterly", "code": "quarterly", "months_interval": 3, "display_order": 3},
    {"name": "Half Yearly", "code": "half-yearly", "months_interval": 6, "display_order": 4},
    {"name": "Yearly", "code": "yearly", "months_interval": 12, "display_order": 5},
)

_CODE_RE = re.compile(r"^[a-z-]+$")

MONTHS_INTERVAL_MESSAGE = "Valid months interval is required (0 for one-time, positive number for recurring)"


def derive_frequency_code(name: str) -> str:
    """"Bi Monthly" -> "bi-monthly"."""
    code = re.sub(r"\s+", "-", name.strip().lower())
    return re.sub(r"[^a-z-]", "", code)


def _normalize_code(code: Optional[str], name: str) -> str:
    if code and code.strip():
        out = code.strip().lower()
        if not _CODE_RE.match(out):
            raise ValidationError("Code must contain only lowercase letters and hyphens")
        return out
    out = derive_frequency_code(name)
    if not out:
        raise ValidationError("Code must be provided or generated from name")
    return out


def _to_response(ff: FeeFrequency, usage_count: int = 0) -> FeeFrequencyResponse:
    return FeeFrequencyResponse(
        id=ff.id,
        tenant_id=ff.tenant_id,
        name=ff.name,
        code=ff.code,
        description=ff.description,
        months_interval=ff.months_interval,
        payments_per_year=ff.payments_per_year,
        is_system=ff.is_system,
        display_order=ff.display_order,
        is_active=ff.is_active,
        usage_count=usage_count,
        created_at=ff.created_at,
        updated_at=ff.updated_at,
    )


async def _usage_counts(db: AsyncSession, tenant_id: UUID) -> Dict[UUID, int]:
    stmt = (
        scoped_select(FeeStructure, tenant_id, FeeStructure.frequency_id, func.count(FeeStructure.id))
        .group_by(FeeStructure.frequency_id)
    )
    result = await db.execute(stmt)
    return {row[0]: row[1] for row in result.all()}


async def initialize_default_frequencies(db: AsyncSession, tenant_id: UUID) -> List[FeeFrequencyResponse]:
    existing = await db.execute(
        scoped_select(FeeFrequency, tenant_id, func.count(FeeFrequency.id)).where(FeeFrequency.is_system.is_(True))
    )
    if existing.scalar_one() > 0:
        raise ConflictError("Default frequencies already initialized")
    created = []
    try:
        for item in DEFAULT_FREQUENCIES:
            ff = FeeFrequency(tenant_id=tenant_id, is_system=True, is_active=True, **item)
            db.add(ff)
            created.append(ff)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A frequency with a default name or code already exists")
    for ff in created:
        await db.refresh(ff)
    return [_to_response(ff) for ff in created]


async def list_fee_frequencies(
    db: AsyncSession,
    tenant_id: UUID,
    active: Optional[bool] = None,
    catalog_type: Optional[CatalogType] = None,
) -> List[FeeFrequencyResponse]:
    stmt = scoped_select(FeeFrequency, tenant_id)
    if active is not None:
        stmt = stmt.where(FeeFrequency.is_active.is_(active))
    if catalog_type == CatalogType.system:
        stmt = stmt.where(FeeFrequency.is_system.is_(True))
    elif catalog_type == CatalogType.custom:
        stmt = stmt.where(FeeFrequency.is_system.is_(False))
    stmt = stmt.order_by(FeeFrequency.display_order, FeeFrequency.name)
    result = await db.execute(stmt)
    usage = await _usage_counts(db, tenant_id)
    return [_to_response(ff, usage.get(ff.id, 0)) for ff in result.scalars().all()]


async def create_fee_frequency(
    db: AsyncSession,
    tenant_id: UUID,
    payload: FeeFrequencyCreate,
) -> FeeFrequencyResponse:
    if payload.months_interval is None or payload.months_interval < 0:
        raise ValidationError(MONTHS_INTERVAL_MESSAGE)
    name = payload.name.strip()
    code = _normalize_code(payload.code, name)
    existing = await db.execute(
        scoped_select(FeeFrequency, tenant_id, FeeFrequency.id).where(
            or_(func.lower(FeeFrequency.name) == name.lower(), FeeFrequency.code == code)
        )
    )
    if existing.first() is not None:
        raise ConflictError("Frequency with this name or code already exists")
    try:
        ff = FeeFrequency(
            tenant_id=tenant_id,
            name=name,
            code=code,
            description=(payload.description or "").strip() or None,
            months_interval=payload.months_interval,
            display_order=payload.display_order or 999,
            is_system=False,
            is_active=True,
        )
        db.add(ff)
        await db.commit()
        await db.refresh(ff)
        return _to_response(ff)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Frequency with this name or code already exists")


async def update_fee_frequency(
    db: AsyncSession,
    tenant_id: UUID,
    frequency_id: UUID,
    payload: FeeFrequencyUpdate,
) -> FeeFrequencyResponse:
    ff = await get_scoped(db, FeeFrequency, tenant_id, frequency_id)
    if not ff:
        raise NotFoundError("Frequency not found")
    if ff.is_system and (
        payload.name is not None
        or payload.description is not None
        or payload.months_interval is not None
        or payload.display_order is not None
    ):
        raise ValidationError("System frequencies can only be activated/deactivated")
    if payload.months_interval is not None and payload.months_interval < 0:
        raise ValidationError(MONTHS_INTERVAL_MESSAGE)
    if payload.name is not None and payload.name.strip() != ff.name:
        name = payload.name.strip()
        clash = await db.execute(
            scoped_select(FeeFrequency, tenant_id, FeeFrequency.id).where(
                func.lower(FeeFrequency.name) == name.lower(),
                FeeFrequency.id != ff.id,
            )
        )
        if clash.first() is not None:
            raise ConflictError("Frequency with this name already exists")
        ff.name = name
    if payload.description is not None:
        ff.description = payload.description.strip() or None
    if payload.months_interval is not None:
        ff.months_interval = payload.months_interval
    if payload.display_order is not None:
        ff.display_order = payload.display_order
    if payload.is_active is not None:
        ff.is_active = payload.is_active
    try:
        await db.commit()
        await db.refresh(ff)
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Fee frequency update conflict")
    usage = await _usage_counts(db, tenant_id)
    return _to_response(ff, usage.get(ff.id, 0))


async def delete_fee_frequency(db: AsyncSession, tenant_id: UUID, frequency_id: UUID) -> None:
    ff = await get_scoped(db, FeeFrequency, tenant_id, frequency_id, for_update=True)
    if not ff:
        raise NotFoundError("Frequency not found")
    if ff.is_system:
        raise ValidationError("System frequencies cannot be deleted")
    count = (
        await db.execute(
            scoped_select(FeeStructure, tenant_id, func.count(FeeStructure.id)).where(
                FeeStructure.frequency_id == ff.id
            )
        )
    ).scalar_one()
    if count > 0:
        raise ValidationError(f"This frequency is being used by {count} fee structure(s)")
    await db.delete(ff)
    await db.commit()


async def get_frequencies_dropdown(db: AsyncSession, tenant_id: UUID) -> List[FeeFrequencyDropdownItem]:
    stmt = (
        scoped_select(FeeFrequency, tenant_id)
        .where(FeeFrequency.is_active.is_(True))
        .order_by(FeeFrequency.display_order, FeeFrequency.name)
    )
    result = await db.execute(stmt)
    return [
        FeeFrequencyDropdownItem(
            label=ff.name,
            value=ff.code,
            months_interval=ff.months_interval,
            order=ff.display_order,
        )
        for ff in result.scalars().all()
    ]
