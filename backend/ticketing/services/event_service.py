"""
Read-side event queries: availability and seat map.

None of these take locks. Their numbers are advisory and may be stale by
the time an order is placed; only place_order decides.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import InvalidReference
from ticketing.models.event import Event
from ticketing.models.ticket_type import TicketType, TICKET_TYPE_HIDDEN
from ticketing.services import seat_map


async def get_event(db: AsyncSession, event_id: int) -> Event:
    result = await db.execute(select(Event).where(Event.id == event_id))
    event = result.scalar_one_or_none()

    if not event:
        raise InvalidReference("event", [event_id])
    return event


async def list_availability(db: AsyncSession, event_id: int) -> list[TicketType]:
    """Visible ticket types of an event, cheapest first."""
    await get_event(db, event_id)
    result = await db.execute(
        select(TicketType)
        .where(TicketType.event_id == event_id, TicketType.status != TICKET_TYPE_HIDDEN)
        .order_by(TicketType.price.asc(), TicketType.id.asc())
    )
    return list(result.scalars().all())


async def get_seat_map(db: AsyncSession, event_id: int) -> list[seat_map.SeatState]:
    event = await get_event(db, event_id)
    return await seat_map.get_seat_map(db, event)
