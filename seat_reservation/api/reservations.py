"""
FastAPI routes for creating, blocking and releasing seat reservations.

Service errors propagate to ErrorHandlerMiddleware, which maps them to
HTTP responses.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.reservation import Reservation
from ..schemas.reservation import (
    CreateReservationsResponse,
    ReleaseReservationsResponse,
    ReservationBlockRequest,
    ReservationCreateRequest,
    ReservationDeleteRequest,
    ReservationListResponse,
    ReservationResponse,
    SelfReservationRequest,
)
from ..services.export_service import ExportService
from ..services.reservation_service import ReservationService
from ..utils.dependencies import Caller, get_current_caller, get_current_manager
from ..utils.exceptions import AuthorizationError

logger = logging.getLogger(__name__)

manager_router = APIRouter(prefix="/manager", tags=["manager reservations"])
user_router = APIRouter(prefix="/user", tags=["reservations"])


def get_reservation_service(db: AsyncSession = Depends(get_db)) -> ReservationService:
    return ReservationService(db)


async def _require_event_manager(service: ReservationService, caller: Caller, event_id: UUID) -> None:
    event = await service.validator.get_event(event_id)
    if not caller.can_manage(event):
        logger.warning(f"User {caller.user_id} is not the manager of event {event_id}")
        raise AuthorizationError(
            "User is not the manager of this event",
            required_permission="event_manager"
        )


def _list_response(reservations: List[Reservation]) -> ReservationListResponse:
    return ReservationListResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations],
        total=len(reservations),
    )


@manager_router.post(
    "/reservations",
    response_model=CreateReservationsResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_reservations(
    request: ReservationCreateRequest,
    caller: Caller = Depends(get_current_manager),
    service: ReservationService = Depends(get_reservation_service)
):
    """
    Reserve seats for a user.

    The whole request succeeds or fails together. With ``deduct_allowance``
    each seat takes one unit of the user's allowance for the event.
    """
    await _require_event_manager(service, caller, request.event_id)

    reservations = await service.create_reservations(
        request.event_id,
        request.seat_ids,
        request.user_id,
        deduct_allowance=request.deduct_allowance,
        acting_user_id=caller.user_id,
        override_permitted=True,
    )

    return CreateReservationsResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations]
    )


@manager_router.post(
    "/reservations/block",
    response_model=CreateReservationsResponse,
    status_code=status.HTTP_201_CREATED
)
async def block_seats(
    request: ReservationBlockRequest,
    caller: Caller = Depends(get_current_manager),
    service: ReservationService = Depends(get_reservation_service)
):
    """Block seats for the calling manager without touching any allowance."""
    await _require_event_manager(service, caller, request.event_id)

    reservations = await service.block_seats(request.event_id, request.seat_ids, caller.user_id)

    return CreateReservationsResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations],
        message="Seats blocked successfully"
    )


@manager_router.delete("/reservations", response_model=ReleaseReservationsResponse)
async def release_reservations(
    request: ReservationDeleteRequest,
    caller: Caller = Depends(get_current_manager),
    service: ReservationService = Depends(get_reservation_service)
):
    """
    Release reservations by id.

    Ids that do not exist are ignored. Released RESERVED seats give their
    allowance back to the user they were reserved for.
    """
    checked_events = set()
    for reservation_id in request.reservation_ids:
        reservation = await service.session.get(Reservation, reservation_id)
        if reservation is None or reservation.event_id in checked_events:
            continue
        await _require_event_manager(service, caller, reservation.event_id)
        checked_events.add(reservation.event_id)

    released = await service.release_reservations(request.reservation_ids, acting_user_id=caller.user_id)

    return ReleaseReservationsResponse(
        released=[ReservationResponse.model_validate(r) for r in released]
    )


@manager_router.get("/events/{event_id}/reservations", response_model=ReservationListResponse)
async def list_event_reservations(
    event_id: UUID,
    caller: Caller = Depends(get_current_manager),
    service: ReservationService = Depends(get_reservation_service)
):
    """List every hold of an event."""
    await _require_event_manager(service, caller, event_id)
    return _list_response(await service.list_for_event(event_id))


@manager_router.get("/events/{event_id}/reservations/export/csv")
async def export_event_reservations_csv(
    event_id: UUID,
    caller: Caller = Depends(get_current_manager),
    service: ReservationService = Depends(get_reservation_service)
):
    """Export an event's reservations as CSV, sorted by seat number."""
    await _require_event_manager(service, caller, event_id)

    content = await ExportService(service).export_csv(event_id)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="reservations_{event_id}.csv"'}
    )


@user_router.post(
    "/reservations",
    response_model=CreateReservationsResponse,
    status_code=status.HTTP_201_CREATED
)
async def reserve_seats(
    request: SelfReservationRequest,
    caller: Caller = Depends(get_current_caller),
    service: ReservationService = Depends(get_reservation_service)
):
    """Reserve seats for yourself within the event's booking window."""
    reservations = await service.reserve_for_self(request.event_id, request.seat_ids, caller.user_id)

    return CreateReservationsResponse(
        reservations=[ReservationResponse.model_validate(r) for r in reservations]
    )


@user_router.get("/reservations", response_model=ReservationListResponse)
async def list_my_reservations(
    caller: Caller = Depends(get_current_caller),
    service: ReservationService = Depends(get_reservation_service)
):
    """List your own reservations."""
    return _list_response(await service.list_for_user(caller.user_id))


@user_router.delete("/reservations/{reservation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def release_my_reservation(
    reservation_id: UUID,
    caller: Caller = Depends(get_current_caller),
    service: ReservationService = Depends(get_reservation_service)
):
    """Release one of your own reservations. Releasing twice is not an error."""
    await service.release_own(reservation_id, caller.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
