"""Fee payment: one money-collection event against a fee assignment."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import PaymentStatus
from app.db.session import Base


class FeePayment(Base):
    """Payment against a fee assignment. Supports partial payments. Immutable once written."""

    __tablename__ = "fee_payments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "receipt_number", name="uq_fee_payment_tenant_receipt"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("school.students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_assignment_id = Column(
        Uuid,
        ForeignKey("school.fee_assignments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(DateTime(timezone=True), nullable=False)
    payment_method = Column(String(30), nullable=False)  # cash, cheque, online, bank_transfer, card
    transaction_id = Column(String(100), nullable=True)
    receipt_number = Column(String(30), nullable=False)  # RCP<year><6-digit sequence>
    collected_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    remarks = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=PaymentStatus.completed.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    fee_assignment = relationship("FeeAssignment")
    collected_by_user = relationship("User", foreign_keys=[collected_by])


class FeeReceiptCounter(Base):
    """Per-tenant receipt sequence. Incremented in the same transaction that writes the payment."""

    __tablename__ = "fee_receipt_counters"
    __table_args__ = {"schema": "school"}

    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), primary_key=True)
    last_value = Column(Integer, nullable=False, default=0)
