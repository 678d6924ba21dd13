"""
Tenant-scoped query construction.

Every fee-engine read and write goes through these helpers so the tenant predicate
is added in exactly one place. Callers always pass tenant_id explicitly.
"""

from typing import Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError

ModelT = TypeVar("ModelT")


def scoped_select(model: Type[ModelT], tenant_id: UUID, *columns) -> Select:
    """select(model) (or the given columns of it) restricted to one tenant."""
    stmt = select(*columns) if columns else select(model)
    return stmt.where(model.tenant_id == tenant_id)


async def get_scoped(
    db: AsyncSession,
    model: Type[ModelT],
    tenant_id: UUID,
    obj_id: UUID,
    *,
    for_update: bool = False,
) -> Optional[ModelT]:
    stmt = scoped_select(model, tenant_id).where(model.id == obj_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_scoped_or_404(
    db: AsyncSession,
    model: Type[ModelT],
    tenant_id: UUID,
    obj_id: UUID,
    message: str,
) -> ModelT:
    obj = await get_scoped(db, model, tenant_id, obj_id)
    if obj is None:
        raise NotFoundError(message)
    return obj
