"""
Pydantic schemas for reservation-related API requests and responses.
"""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field

from ..models.reservation import ReservationStatus


class SeatSelection(BaseModel):
    """Seats of one event, processed in the given order."""

    event_id: UUID = Field(..., description="ID of the event")
    seat_ids: List[UUID] = Field(..., min_length=1, description="Seats to hold, in processing order")


class ReservationCreateRequest(SeatSelection):
    """Schema for a manager reserving seats on behalf of a user."""

    user_id: UUID = Field(..., description="User the seats are reserved for")
    deduct_allowance: bool = Field(True, description="Charge one unit of the user's allowance per seat")


class ReservationBlockRequest(SeatSelection):
    """Schema for blocking seats without a user allowance."""


class SelfReservationRequest(SeatSelection):
    """Schema for a user reserving seats for themselves."""


class ReservationDeleteRequest(BaseModel):
    """Schema for releasing reservations in bulk."""

    reservation_ids: List[UUID] = Field(..., min_length=1, description="Reservations to release")


class ReservationResponse(BaseModel):
    """Schema for reservation responses."""

    id: UUID
    user_id: UUID
    event_id: UUID
    seat_id: UUID
    status: ReservationStatus
    reservation_date: datetime
    confirmation_code: str

    model_config = {"from_attributes": True}


class ReservationListResponse(BaseModel):
    """Schema for reservation list responses."""

    reservations: List[ReservationResponse]
    total: int


class CreateReservationsResponse(BaseModel):
    """Response for successfully created or blocked seats."""

    reservations: List[ReservationResponse]
    message: str = "Reservations created successfully"


class ReleaseReservationsResponse(BaseModel):
    """Response for a bulk release; ids that did not exist are simply absent."""

    released: List[ReservationResponse]
    message: str = "Reservations released successfully"
