"""Fee audit log: immutable financial change tracking for audit safety."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.db.session import Base


class FeeAuditLog(Base):
    """Immutable audit trail for fee-related financial changes."""

    __tablename__ = "fee_audit_logs"
    __table_args__ = {"schema": "school"}

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(Uuid, nullable=False)
    action_type = Column(String(30), nullable=False)  # CREATE, UPDATE, DELETE, DISCOUNT, CANCEL, PAYMENT
    old_value = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    new_value = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    changed_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    changed_by_user = relationship("User", foreign_keys=[changed_by])
