"""Fee frequency schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class FeeFrequencyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=50, description="Lowercase letters and hyphens; derived from name when omitted")
    description: Optional[str] = None
    # Validated in the service so a bad value is a 400 with a readable message
    months_interval: Optional[int] = Field(None, description="0 for one-time, N for every N months")
    display_order: Optional[int] = Field(None, ge=0)


class FeeFrequencyUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    months_interval: Optional[int] = None
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class FeeFrequencyResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    code: str
    description: Optional[str] = None
    months_interval: int
    payments_per_year: int
    is_system: bool
    display_order: int
    is_active: bool
    usage_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FeeFrequencyInitResponse(BaseModel):
    success: bool = True
    message: str
    count: int
    data: List[FeeFrequencyResponse]


class FeeFrequencyDropdownItem(BaseModel):
    label: str
    value: str
    months_interval: int
    order: int
