"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeeStatus, PaymentMethod, PaymentStatus

ACADEMIC_YEAR_PATTERN = r"^\d{4}-\d{4}$"


# --- References embedded in responses ---
class CategoryRef(BaseModel):
    id: UUID
    name: str
    code: str


class FrequencyRef(BaseModel):
    id: UUID
    name: str
    code: str
    months_interval: int


class ClassRef(BaseModel):
    id: UUID
    name: str
    section: str
    display_name: str


# --- Fee Structure ---
class FeeStructureCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category_id: UUID
    frequency_id: UUID
    class_ids: List[UUID] = Field(default_factory=list)
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN, description="e.g. 2024-2025")
    due_day: Optional[int] = Field(None, ge=1, le=31, description="Day of month; defaults to 10")
    description: Optional[str] = None


class FeeStructureUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category_id: Optional[UUID] = None
    frequency_id: Optional[UUID] = None
    class_ids: Optional[List[UUID]] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    academic_year: Optional[str] = Field(None, pattern=ACADEMIC_YEAR_PATTERN)
    due_day: Optional[int] = Field(None, ge=1, le=31)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class FeeStructureResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    category: Optional[CategoryRef] = None
    frequency: Optional[FrequencyRef] = None
    classes: List[ClassRef] = Field(default_factory=list)
    amount: Decimal
    academic_year: str
    due_day: int
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


# --- Fee Assignment ---
class DiscountIn(BaseModel):
    amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=255)


class AssignFeeRequest(BaseModel):
    student_id: UUID
    fee_structure_id: UUID
    discount: Optional[DiscountIn] = None


class AutoAssignRequest(BaseModel):
    student_id: UUID
    class_id: UUID


class CancelAssignmentRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class FeeAssignmentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_id: UUID
    fee_structure_id: UUID
    academic_year: str
    total_amount: Decimal
    discount_amount: Decimal
    discount_reason: Optional[str] = None
    final_amount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    due_date: date
    status: FeeStatus
    paid_date: Optional[datetime] = None
    last_payment_id: Optional[UUID] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class FeeAssignmentWithDetails(FeeAssignmentResponse):
    fee_name: Optional[str] = None
    category_code: Optional[str] = None
    category_name: Optional[str] = None
    frequency_code: Optional[str] = None


class StudentFeesTotals(BaseModel):
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")
    overdue_amount: Decimal = Decimal("0")


class StudentFeesResponse(BaseModel):
    assignments: List[FeeAssignmentWithDetails]
    summary: StudentFeesTotals


# --- Payment ---
class PaymentCreate(BaseModel):
    fee_assignment_id: UUID
    student_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_method: PaymentMethod
    transaction_id: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None
    payment_date: Optional[datetime] = None


class PaymentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_id: UUID
    fee_assignment_id: UUID
    amount: Decimal
    payment_date: datetime
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    receipt_number: str
    collected_by: Optional[UUID] = None
    remarks: Optional[str] = None
    status: PaymentStatus
    created_at: datetime
    student_name: Optional[str] = None
    collected_by_name: Optional[str] = None
    assignment_status: Optional[FeeStatus] = None
    assignment_paid_amount: Optional[Decimal] = None


class PaymentListResponse(BaseModel):
    count: int
    total_amount: Decimal
    data: List[PaymentResponse]


# --- Summary ---
class SummaryBuckets(BaseModel):
    expected: Decimal = Decimal("0")
    collected: Decimal = Decimal("0")
    pending: Decimal = Decimal("0")
    overdue: Decimal = Decimal("0")


class ClassBuckets(SummaryBuckets):
    student_count: int = 0


class StudentBuckets(SummaryBuckets):
    student_id: UUID
    name: str
    roll_number: Optional[str] = None


class PaymentHistoryItem(BaseModel):
    payment_id: UUID
    amount: Decimal
    date: datetime
    method: str
    receipt_number: Optional[str] = None
    student_name: Optional[str] = None
    collected_by: str


class SchoolFeeSummary(BaseModel):
    level: str = "school"
    academic_year: Optional[str] = None
    total_students: int = 0
    total_assignments: int = 0
    total_expected: Decimal = Decimal("0")
    total_collected: Decimal = Decimal("0")
    total_pending: Decimal = Decimal("0")
    total_overdue: Decimal = Decimal("0")
    collection_rate: Decimal = Decimal("0")
    class_wise_summary: Dict[str, ClassBuckets] = Field(default_factory=dict)
    category_wise_summary: Dict[str, SummaryBuckets] = Field(default_factory=dict)
    recent_payments: List[PaymentHistoryItem] = Field(default_factory=list)


class ClassFeeSummary(BaseModel):
    level: str = "class"
    academic_year: Optional[str] = None
    class_id: UUID
    class_name: str
    total_students: int = 0
    total_assignments: int = 0
    total_expected: Decimal = Decimal("0")
    total_collected: Decimal = Decimal("0")
    total_pending: Decimal = Decimal("0")
    total_overdue: Decimal = Decimal("0")
    collection_rate: Decimal = Decimal("0")
    students: List[StudentBuckets] = Field(default_factory=list)
    category_wise_summary: Dict[str, SummaryBuckets] = Field(default_factory=dict)


class StudentFeeDetail(BaseModel):
    assignment_id: UUID
    fee_name: str
    category: str
    frequency: str
    total_amount: Decimal
    discount: Decimal
    paid_amount: Decimal
    pending_amount: Decimal
    overdue_amount: Optional[Decimal] = None
    due_date: date
    status: FeeStatus


class StudentFeeSummary(BaseModel):
    level: str = "student"
    academic_year: Optional[str] = None
    student_id: UUID
    student_name: str
    student_roll_number: Optional[str] = None
    class_name: str
    message: Optional[str] = None
    total_expected: Decimal = Decimal("0")
    total_collected: Decimal = Decimal("0")
    total_pending: Decimal = Decimal("0")
    total_overdue: Decimal = Decimal("0")
    collection_rate: Decimal = Decimal("0")
    category_wise_summary: Dict[str, SummaryBuckets] = Field(default_factory=dict)
    fee_details: List[StudentFeeDetail] = Field(default_factory=list)
    payment_history: List[PaymentHistoryItem] = Field(default_factory=list)


class ComprehensiveFeeSummary(BaseModel):
    level: str = "comprehensive"
    academic_year: Optional[str] = None
    school: SchoolFeeSummary
    classes: List[ClassFeeSummary] = Field(default_factory=list)
