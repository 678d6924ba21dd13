"""Fee category master (Tuition, Transport, Library ...). Tenant-scoped."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid

from app.db.session import Base


class FeeCategory(Base):
    """Tenant-scoped fee category. System rows are seeded by initialize-defaults and protected."""

    __tablename__ = "fee_categories"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_fee_category_tenant_code"),
        UniqueConstraint("tenant_id", "name", name="uq_fee_category_tenant_name"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), nullable=False)  # uppercase + underscores, e.g. BUS_TRANSPORT
    description = Column(Text, nullable=True)
    is_system = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=999)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
