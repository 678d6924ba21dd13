"""
Audit logging for fee structures, assignments and payments. Call on every financial change.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import FeeAuditLog


async def log_fee_audit(
    db: AsyncSession,
    tenant_id: UUID,
    reference_table: str,
    reference_id: UUID,
    action_type: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    """Append one audit log entry. Caller must commit."""
    log = FeeAuditLog(
        tenant_id=tenant_id,
        reference_table=reference_table,
        reference_id=reference_id,
        action_type=action_type,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(log)
