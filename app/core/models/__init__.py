from app.core.models.tenant import Tenant
from app.core.models.fee_structure import FeeStructure, fee_structure_classes
from app.core.models.class_model import SchoolClass
from app.core.models.student import Student
from app.core.models.fee_frequency import FeeFrequency
from app.core.models.fee_category import FeeCategory
from app.core.models.fee_assignment import FeeAssignment
from app.core.models.fee_payment import FeePayment, FeeReceiptCounter
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "Tenant",
    "SchoolClass",
    "Student",
    "FeeFrequency",
    "FeeCategory",
    "FeeStructure",
    "fee_structure_classes",
    "FeeAssignment",
    "FeePayment",
    "FeeReceiptCounter",
    "FeeAuditLog",
]
