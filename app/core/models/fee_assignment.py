"""Fee assignment: one student's obligation for one fee structure in one academic year."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import FeeStatus
from app.db.session import Base


class FeeAssignment(Base):
    """
    Snapshot of a fee structure assigned to a student.
    total_amount is copied from the structure at creation and never follows later price edits.
    final_amount = total_amount - discount_amount; recomputed only by the discount write path.
    Status is derived from (paid_amount, final_amount, due_date, today) on every persist;
    cancelled is terminal.
    """

    __tablename__ = "fee_assignments"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "student_id",
            "fee_structure_id",
            "academic_year",
            name="uq_fee_assignment_student_structure_year",
        ),
        CheckConstraint("paid_amount >= 0", name="chk_fee_assignment_paid_amount"),
        CheckConstraint(
            "status IN ('pending','partially_paid','paid','overdue','cancelled')",
            name="chk_fee_assignment_status",
        ),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("school.students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("school.fee_structures.id", ondelete="RESTRICT"),
        nullable=False,
    )
    academic_year = Column(String(9), nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_reason = Column(String(255), nullable=True)
    final_amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)

    status = Column(String(20), nullable=False, default=FeeStatus.pending.value)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    # Most recent payment; full history comes from fee_payments
    last_payment_id = Column(Uuid, nullable=True)

    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Optimistic concurrency: every UPDATE asserts the version it read
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    student = relationship("Student")
    fee_structure = relationship("FeeStructure")
