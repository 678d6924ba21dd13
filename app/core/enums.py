from enum import Enum


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    PARENT = "PARENT"


class FeeStatus(str, Enum):
    pending = "pending"
    partially_paid = "partially_paid"
    paid = "paid"
    overdue = "overdue"
    cancelled = "cancelled"


class PaymentMethod(str, Enum):
    cash = "cash"
    cheque = "cheque"
    online = "online"
    bank_transfer = "bank_transfer"
    card = "card"


class PaymentStatus(str, Enum):
    completed = "completed"
    pending = "pending"
    failed = "failed"
    refunded = "refunded"


class CatalogType(str, Enum):
    """Filter for category/frequency listings."""

    system = "system"
    custom = "custom"


class SummaryLevel(str, Enum):
    school = "school"
    class_ = "class"
    student = "student"
    comprehensive = "comprehensive"
