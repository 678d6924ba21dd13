"""Fee frequency master (One Time, Monthly, Quarterly ...). Tenant-scoped."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid

from app.db.session import Base


class FeeFrequency(Base):
    """
    Recurring cadence for fee structures.
    months_interval: 0 = one time, otherwise number of months between dues.
    System rows (is_system) can only be activated/deactivated, never edited or deleted.
    """

    __tablename__ = "fee_frequencies"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_fee_frequency_tenant_code"),
        UniqueConstraint("tenant_id", "name", name="uq_fee_frequency_tenant_name"),
        CheckConstraint("months_interval >= 0", name="chk_fee_frequency_months_interval"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), nullable=False)  # lowercase + hyphens, e.g. half-yearly
    description = Column(Text, nullable=True)
    months_interval = Column(Integer, nullable=False)
    is_system = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=999)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def payments_per_year(self) -> int:
        if not self.months_interval:
            return 1
        return 12 // self.months_interval
