"""API endpoints for the seat reservation service."""

from fastapi import APIRouter
from . import allowances, reservations

# Create main API router
api_router = APIRouter(prefix="/api/v1")

api_router.include_router(reservations.manager_router)
api_router.include_router(reservations.user_router)
api_router.include_router(allowances.manager_router)
api_router.include_router(allowances.user_router)

__all__ = ["api_router"]
