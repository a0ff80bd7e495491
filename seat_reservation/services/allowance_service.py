"""
Allowance administration for event managers.
"""

import logging
from typing import List, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import unit_of_work
from ..models.allowance import EventUserAllowance
from ..models.event import Event
from ..models.user import User
from ..utils.dependencies import Caller
from ..utils.exceptions import (
    AllowanceNotFoundError,
    AuthorizationError,
    EventNotFoundError,
    UserNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event
from .allowance_ledger import AllowanceLedger

logger = logging.getLogger(__name__)


class AllowanceService:
    """Grant, change, inspect and revoke reservation allowances."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.ledger = AllowanceLedger(session)

    async def set_allowances(
        self,
        event_id: UUID,
        user_ids: Sequence[UUID],
        count: int,
        caller: Caller
    ) -> List[EventUserAllowance]:
        """
        Set the same allowance for several users of one event.

        Entries that do not exist yet are created. All users are checked
        before anything is written.
        """
        if not user_ids:
            raise ValidationError(
                "At least one user must be given",
                field_errors={"user_ids": ["must not be empty"]}
            )

        event = await self._managed_event(event_id, caller)

        unique_ids = list(dict.fromkeys(user_ids))
        result = await self.session.execute(select(User.id).where(User.id.in_(unique_ids)))
        known = set(result.scalars().all())
        for user_id in unique_ids:
            if user_id not in known:
                raise UserNotFoundError(str(user_id))

        async with unit_of_work(self.session):
            allowances = [
                await self.ledger.set_quota(user_id, event.id, count)
                for user_id in unique_ids
            ]

        log_business_event(
            "allowances_set",
            {
                "event_id": str(event.id),
                "target_user_ids": [str(user_id) for user_id in unique_ids],
                "count": count,
            },
            user_id=str(caller.user_id)
        )
        return allowances

    async def update_allowance(self, allowance_id: UUID, count: int, caller: Caller) -> EventUserAllowance:
        allowance = await self.get_allowance(allowance_id, caller)

        async with unit_of_work(self.session):
            updated = await self.ledger.set_quota(allowance.user_id, allowance.event_id, count)

        log_business_event(
            "allowance_updated",
            {"allowance_id": str(allowance_id), "count": count},
            user_id=str(caller.user_id)
        )
        return updated

    async def get_allowance(self, allowance_id: UUID, caller: Caller) -> EventUserAllowance:
        allowance = await self.ledger.get_by_id(allowance_id)
        if allowance is None:
            raise AllowanceNotFoundError(str(allowance_id))

        await self._managed_event(allowance.event_id, caller)
        return allowance

    async def list_for_event(self, event_id: UUID, caller: Caller) -> List[EventUserAllowance]:
        await self._managed_event(event_id, caller)
        return await self.ledger.list_for_event(event_id)

    async def list_allowances(self, caller: Caller) -> List[EventUserAllowance]:
        """Admins see every allowance; managers those of the events they manage."""
        query = select(EventUserAllowance).order_by(EventUserAllowance.event_id, EventUserAllowance.user_id)
        if not caller.is_admin:
            query = query.join(Event, Event.id == EventUserAllowance.event_id).where(
                Event.manager_id == caller.user_id
            )

        result = await self.session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def list_for_user(self, user_id: UUID) -> List[EventUserAllowance]:
        return await self.ledger.list_for_user(user_id)

    async def delete_allowance(self, allowance_id: UUID, caller: Caller) -> None:
        allowance = await self.get_allowance(allowance_id, caller)

        async with unit_of_work(self.session):
            await self.ledger.delete(allowance.id)

        log_business_event(
            "allowance_revoked",
            {
                "allowance_id": str(allowance_id),
                "event_id": str(allowance.event_id),
                "target_user_id": str(allowance.user_id),
            },
            user_id=str(caller.user_id)
        )

    async def _managed_event(self, event_id: UUID, caller: Caller) -> Event:
        event = await self.session.get(Event, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))

        if not caller.can_manage(event):
            logger.warning(f"User {caller.user_id} is not allowed to manage allowances of event {event_id}")
            raise AuthorizationError(
                "User is not the manager of this event",
                required_permission="event_manager"
            )
        return event
