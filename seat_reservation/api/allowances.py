"""
FastAPI routes for reservation allowance administration.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..models.allowance import EventUserAllowance
from ..schemas.allowance import (
    AllowanceCreateRequest,
    AllowanceListResponse,
    AllowanceResponse,
    AllowanceUpdateRequest,
)
from ..services.allowance_service import AllowanceService
from ..utils.dependencies import Caller, get_current_caller, get_current_manager

manager_router = APIRouter(prefix="/manager", tags=["allowances"])
user_router = APIRouter(prefix="/user", tags=["allowances"])


def get_allowance_service(db: AsyncSession = Depends(get_db)) -> AllowanceService:
    return AllowanceService(db)


def _list_response(allowances: List[EventUserAllowance]) -> AllowanceListResponse:
    return AllowanceListResponse(
        allowances=[AllowanceResponse.model_validate(a) for a in allowances],
        total=len(allowances),
    )


@manager_router.post(
    "/allowances",
    response_model=AllowanceListResponse,
    status_code=status.HTTP_201_CREATED
)
async def set_allowances(
    request: AllowanceCreateRequest,
    caller: Caller = Depends(get_current_manager),
    service: AllowanceService = Depends(get_allowance_service)
):
    """Set how many seats each listed user may reserve for the event."""
    allowances = await service.set_allowances(
        request.event_id,
        request.user_ids,
        request.reservations_allowed_count,
        caller,
    )
    return _list_response(allowances)


@manager_router.get("/allowances", response_model=AllowanceListResponse)
async def list_allowances(
    caller: Caller = Depends(get_current_manager),
    service: AllowanceService = Depends(get_allowance_service)
):
    """All allowances for admins; those of managed events otherwise."""
    return _list_response(await service.list_allowances(caller))


@manager_router.get("/events/{event_id}/allowances", response_model=AllowanceListResponse)
async def list_event_allowances(
    event_id: UUID,
    caller: Caller = Depends(get_current_manager),
    service: AllowanceService = Depends(get_allowance_service)
):
    return _list_response(await service.list_for_event(event_id, caller))


@manager_router.get("/allowances/{allowance_id}", response_model=AllowanceResponse)
async def get_allowance(
    allowance_id: UUID,
    caller: Caller = Depends(get_current_manager),
    service: AllowanceService = Depends(get_allowance_service)
):
    return AllowanceResponse.model_validate(await service.get_allowance(allowance_id, caller))


@manager_router.put("/allowances/{allowance_id}", response_model=AllowanceResponse)
async def update_allowance(
    allowance_id: UUID,
    request: AllowanceUpdateRequest,
    caller: Caller = Depends(get_current_manager),
    service: AllowanceService = Depends(get_allowance_service)
):
    """Replace the allowance count of an existing entry."""
    allowance = await service.update_allowance(allowance_id, request.reservations_allowed_count, caller)
    return AllowanceResponse.model_validate(allowance)


@manager_router.delete("/allowances/{allowance_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_allowance(
    allowance_id: UUID,
    caller: Caller = Depends(get_current_manager),
    service: AllowanceService = Depends(get_allowance_service)
):
    """Revoke an allowance. Existing reservations are kept."""
    await service.delete_allowance(allowance_id, caller)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@user_router.get("/allowances", response_model=AllowanceListResponse)
async def list_my_allowances(
    caller: Caller = Depends(get_current_caller),
    service: AllowanceService = Depends(get_allowance_service)
):
    """How many more seats you may reserve, per event."""
    return _list_response(await service.list_for_user(caller.user_id))
