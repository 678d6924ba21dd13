from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., max_length=50)
    section: str = Field("A", max_length=20)
    display_order: Optional[int] = None
    fee_structure_ids: List[UUID] = Field(default_factory=list, description="Fee structures that apply to this class")


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=50)
    section: Optional[str] = Field(None, max_length=20)
    display_order: Optional[int] = None
    is_active: Optional[bool] = None
    fee_structure_ids: Optional[List[UUID]] = None


class ClassFeeStructuresUpdate(BaseModel):
    """Full replacement of the class's fee structure binding."""
    fee_structure_ids: List[UUID] = Field(default_factory=list)


class ClassResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    section: str
    display_name: str
    display_order: Optional[int] = None
    is_active: bool
    fee_structure_ids: List[UUID] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ClassDeleteResponse(BaseModel):
    success: bool = True
    message: str
    cancelled_assignments: int = 0
