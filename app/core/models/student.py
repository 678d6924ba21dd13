import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    """
    Student enrolled in exactly one class of a tenant.
    Joining a class triggers fee auto-assignment for that class's active fee structures.
    """

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("tenant_id", "class_id", "roll_number", name="uq_student_tenant_class_roll"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("core.classes.id"), nullable=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False, default="")
    roll_number = Column(String(50), nullable=True)
    admission_number = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    # Parent user (role PARENT) when the school has issued parent logins
    parent_id = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", foreign_keys=[class_id])

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
