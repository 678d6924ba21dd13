from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.api.v1.fees.schemas import DiscountIn, FeeAssignmentResponse


class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    class_id: UUID
    roll_number: Optional[str] = Field(None, max_length=50)
    admission_number: Optional[str] = Field(None, max_length=50)
    date_of_birth: Optional[date] = None
    parent_id: Optional[UUID] = None
    fee_discount: Optional[DiscountIn] = Field(None, description="Applied to every fee assigned at enrollment")


class StudentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    class_id: Optional[UUID] = None
    first_name: str
    last_name: str
    full_name: str
    roll_number: Optional[str] = None
    admission_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    parent_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class StudentCreateResponse(StudentResponse):
    assigned_fees: List[FeeAssignmentResponse] = Field(default_factory=list)
    fee_assignment_error: Optional[str] = None
