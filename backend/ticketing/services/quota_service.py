"""
Per-user, per-event purchase cap.

The count only includes tickets that are not cancelled. The check itself is
pure so the order service can run it inside its transaction, after the
count was read in that same transaction.
"""

from dataclasses import dataclass

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.exceptions import QuotaExceeded
from ticketing.models.event import Event
from ticketing.models.order import Ticket, TICKET_CANCELLED


@dataclass(frozen=True)
class Allowance:
    event_id: int
    cap: int
    already_purchased: int

    @property
    def remaining(self) -> int:
        return max(self.cap - self.already_purchased, 0)


def effective_cap(event: Event) -> int:
    if event.max_tickets_per_user is None:
        return get_settings().DEFAULT_MAX_TICKETS_PER_USER
    return event.max_tickets_per_user


async def count_active_tickets(db: AsyncSession, user_id: int, event_id: int) -> int:
    result = await db.execute(
        select(func.count(Ticket.id)).where(
            Ticket.user_id == user_id,
            Ticket.event_id == event_id,
            Ticket.status != TICKET_CANCELLED,
        )
    )
    return result.scalar_one()


async def get_allowance(db: AsyncSession, user_id: int, event: Event) -> Allowance:
    already = await count_active_tickets(db, user_id, event.id)
    return Allowance(event_id=event.id, cap=effective_cap(event), already_purchased=already)


def check_quota(allowance: Allowance, requested: int) -> None:
    if allowance.already_purchased + requested > allowance.cap:
        raise QuotaExceeded(
            event_id=allowance.event_id,
            cap=allowance.cap,
            already_purchased=allowance.already_purchased,
            requested=requested,
        )
