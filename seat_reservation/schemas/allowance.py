"""
Pydantic schemas for reservation allowance administration.
"""

from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class AllowanceCreateRequest(BaseModel):
    """Schema for granting the same allowance to several users of one event."""

    event_id: UUID = Field(..., description="ID of the event")
    user_ids: List[UUID] = Field(..., min_length=1, description="Users receiving the allowance")
    reservations_allowed_count: int = Field(1, ge=0, description="Seats each user may reserve")


class AllowanceUpdateRequest(BaseModel):
    """Schema for changing an existing allowance."""

    reservations_allowed_count: int = Field(..., ge=0, description="New absolute allowance")


class AllowanceResponse(BaseModel):
    """Schema for allowance responses."""

    id: UUID
    user_id: UUID
    event_id: UUID
    reservations_allowed_count: int

    model_config = {"from_attributes": True}


class AllowanceListResponse(BaseModel):
    """Schema for allowance list responses."""

    allowances: List[AllowanceResponse]
    total: int
