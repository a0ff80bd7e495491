"""
Allowance ledger; the per (user, event) reservation quota.

Every method runs inside the caller's transaction and never commits. The
decrement and increment are single conditional UPDATE statements so that the
row lock taken by the database is the only serialization point between
concurrent requests for the same user and event.
"""

import logging
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import func, select, update, delete
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.allowance import EventUserAllowance
from ..utils.exceptions import (
    InvariantViolationError,
    QuotaExceededError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_COUNT = EventUserAllowance.reservations_allowed_count


class AllowanceLedger:
    """Atomic quota operations over ``event_user_allowances``."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def try_consume(self, user_id: UUID, event_id: UUID) -> int:
        """
        Take one unit of allowance.

        Returns:
            The remaining count after the decrement

        Raises:
            QuotaExceededError: No entry exists, or the entry is at zero
            InvariantViolationError: The stored count went negative
        """
        stmt = (
            update(EventUserAllowance)
            .where(
                EventUserAllowance.user_id == user_id,
                EventUserAllowance.event_id == event_id,
                _COUNT > 0,
            )
            .values(reservations_allowed_count=_COUNT - 1)
            .returning(_COUNT)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        remaining = result.scalar_one_or_none()

        if remaining is None:
            has_allowance = await self._exists(user_id, event_id)
            logger.info(
                f"Allowance refused for user {user_id}, event {event_id} "
                f"({'exhausted' if has_allowance else 'absent'})"
            )
            raise QuotaExceededError(str(user_id), str(event_id), has_allowance=has_allowance)

        if remaining < 0:
            logger.critical(
                f"Allowance for user {user_id}, event {event_id} decremented to {remaining}"
            )
            raise InvariantViolationError(
                f"Allowance for user {user_id} and event {event_id} went negative",
                details={"user_id": str(user_id), "event_id": str(event_id), "count": remaining}
            )

        logger.debug(f"Allowance consumed for user {user_id}, event {event_id}; {remaining} left")
        return remaining

    async def restore(self, user_id: UUID, event_id: UUID) -> Optional[int]:
        """
        Give back one unit of allowance.

        A missing entry is left missing; BLOCKED-only history or a grant that
        was revoked must not create one. Returns the new count, or None.
        """
        stmt = (
            update(EventUserAllowance)
            .where(
                EventUserAllowance.user_id == user_id,
                EventUserAllowance.event_id == event_id,
            )
            .values(reservations_allowed_count=_COUNT + 1)
            .returning(_COUNT)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        restored = result.scalar_one_or_none()

        if restored is None:
            logger.debug(f"No allowance entry to restore for user {user_id}, event {event_id}")
        return restored

    async def set_quota(self, user_id: UUID, event_id: UUID, count: int) -> EventUserAllowance:
        """
        Set the allowance to an absolute value, creating the entry if absent.

        Uses INSERT .. ON CONFLICT DO UPDATE so two managers granting the same
        pair at once both end up updating one row.
        """
        if count < 0:
            raise ValidationError(
                "Reservation allowance cannot be negative",
                field_errors={"reservations_allowed_count": ["must be greater than or equal to 0"]}
            )

        dialect = self.session.get_bind().dialect.name
        insert = postgresql_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert(EventUserAllowance).values(
            id=uuid4(),
            user_id=user_id,
            event_id=event_id,
            reservations_allowed_count=count,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[EventUserAllowance.user_id, EventUserAllowance.event_id],
            set_={
                "reservations_allowed_count": stmt.excluded.reservations_allowed_count,
                "updated_at": func.now(),
            },
        ).returning(EventUserAllowance.id)

        result = await self.session.execute(stmt)
        allowance_id = result.scalar_one()

        logger.info(f"Allowance for user {user_id}, event {event_id} set to {count}")
        return await self.get_by_id(allowance_id)

    async def get(self, user_id: UUID, event_id: UUID) -> Optional[EventUserAllowance]:
        result = await self.session.execute(
            select(EventUserAllowance)
            .where(
                EventUserAllowance.user_id == user_id,
                EventUserAllowance.event_id == event_id,
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, allowance_id: UUID) -> Optional[EventUserAllowance]:
        result = await self.session.execute(
            select(EventUserAllowance)
            .where(EventUserAllowance.id == allowance_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_for_event(self, event_id: UUID) -> List[EventUserAllowance]:
        result = await self.session.execute(
            select(EventUserAllowance)
            .where(EventUserAllowance.event_id == event_id)
            .order_by(EventUserAllowance.user_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_for_user(self, user_id: UUID) -> List[EventUserAllowance]:
        result = await self.session.execute(
            select(EventUserAllowance)
            .where(EventUserAllowance.user_id == user_id)
            .order_by(EventUserAllowance.event_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def delete(self, allowance_id: UUID) -> Optional[EventUserAllowance]:
        """Revoke an allowance entry. Returns the removed entry, or None."""
        allowance = await self.get_by_id(allowance_id)
        if allowance is None:
            return None

        await self.session.execute(
            delete(EventUserAllowance)
            .where(EventUserAllowance.id == allowance_id)
            .execution_options(synchronize_session=False)
        )
        self.session.expunge(allowance)
        logger.info(
            f"Allowance {allowance_id} revoked for user {allowance.user_id}, event {allowance.event_id}"
        )
        return allowance

    async def _exists(self, user_id: UUID, event_id: UUID) -> bool:
        result = await self.session.execute(
            select(EventUserAllowance.id).where(
                EventUserAllowance.user_id == user_id,
                EventUserAllowance.event_id == event_id,
            )
        )
        return result.first() is not None
