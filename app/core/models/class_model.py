"""Tenant-scoped classes (e.g. 1st - A, 10th - B). Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.core.models.fee_structure import fee_structure_classes


class SchoolClass(Base):
    """Tenant-scoped class master. Soft delete via is_active (+ deleted_at / deleted_by)."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", "section", name="uq_class_tenant_name_section"),
        {"schema": "core"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    section = Column(String(20), nullable=False, default="A")
    display_order = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
    deleted_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", backref="school_classes")
    # Same association rows as FeeStructure.classes, so both sides always agree.
    fee_structures = relationship(
        "FeeStructure",
        secondary=fee_structure_classes,
        back_populates="classes",
        lazy="selectin",
    )

    @property
    def display_name(self) -> str:
        return f"{self.name} - {self.section}"
