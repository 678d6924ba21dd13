"""Fee category schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FeeCategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=50, description="Uppercase letters and underscores; derived from name when omitted")
    description: Optional[str] = None
    display_order: Optional[int] = Field(None, ge=0)


class FeeCategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class FeeCategoryResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    code: str
    description: Optional[str] = None
    is_system: bool
    display_order: int
    is_active: bool
    usage_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FeeCategoryInitResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    data: List[FeeCategoryResponse]


class FeeCategoryDropdownItem(BaseModel):
    label: str
    value: str
    order: int
