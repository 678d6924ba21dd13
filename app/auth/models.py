import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class User(Base):
    """Staff or parent user within a tenant. Staff users appear as collectors on fee payments."""

    __tablename__ = "users"
    __table_args__ = (
        # Email must be unique per tenant
        UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
        {"schema": "auth"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owning tenant
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id"), nullable=False)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    mobile = Column(String(50), nullable=True)
    # SUPER_ADMIN, ADMIN, TEACHER, PARENT
    role = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")


class Role(Base):
    """Tenant-scoped role with JSON permissions."""

    __tablename__ = "roles"
    __table_args__ = (
        # Role name must be unique within a tenant
        UniqueConstraint("tenant_id", "name", name="uq_role_tenant_name"),
        {"schema": "auth"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id"), nullable=False)
    name = Column(String(100), nullable=False)
    # Example shape:
    # {
    #   "fees": {"create": true, "read": true, "update": false, "delete": false},
    #   "classes": {"read": true}
    # }
    permissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
