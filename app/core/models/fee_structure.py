"""Fee structure: priced fee offering for a set of classes in one academic year."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.db.session import Base


fee_structure_classes = Table(
    "fee_structure_classes",
    Base.metadata,
    Column(
        "fee_structure_id",
        Uuid,
        ForeignKey("school.fee_structures.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("class_id", Uuid, ForeignKey("core.classes.id", ondelete="CASCADE"), primary_key=True),
    schema="school",
)


class FeeStructure(Base):
    """
    Priced offering, not a per-student obligation. Students get FeeAssignment rows
    that copy amount at assignment time; later price edits never touch them.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="chk_fee_structure_amount"),
        CheckConstraint("due_day BETWEEN 1 AND 31", name="chk_fee_structure_due_day"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    category_id = Column(Uuid, ForeignKey("school.fee_categories.id", ondelete="RESTRICT"), nullable=False)
    frequency_id = Column(Uuid, ForeignKey("school.fee_frequencies.id", ondelete="RESTRICT"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    academic_year = Column(String(9), nullable=False)  # e.g. "2024-2025"
    due_day = Column(Integer, nullable=False, default=10)  # day of month for recurring dues
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    category = relationship("FeeCategory", lazy="joined")
    frequency = relationship("FeeFrequency", lazy="joined")
    classes = relationship(
        "SchoolClass",
        secondary=fee_structure_classes,
        back_populates="fee_structures",
        lazy="selectin",
    )
