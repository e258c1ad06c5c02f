"""
Seat map: which seats of an event's room are free.

"Taken" is derived, never stored: a seat is taken for an event when a
non-cancelled ticket for that event references it. The order service runs
the check before writing anything. Concurrent orders for the same event are
serialised by the event version claim, and the partial unique index on
tickets(event_id, seat_id) backs it up.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import InvalidReference, SeatConflict
from ticketing.models.event import Event
from ticketing.models.order import Ticket, TICKET_CANCELLED
from ticketing.models.venue import Seat


@dataclass(frozen=True)
class SeatState:
    seat_id: int
    row: str
    number: int
    label: str
    is_active: bool
    taken: bool


async def load_event_seats(db: AsyncSession, event: Event, seat_ids: Sequence[int]) -> list[Seat]:
    """Seats in request order. Unknown ids or seats outside the event's room are invalid."""
    if event.room_id is None:
        raise InvalidReference("seat", list(seat_ids))

    result = await db.execute(
        select(Seat).where(Seat.id.in_(list(seat_ids)), Seat.room_id == event.room_id)
    )
    found = {seat.id: seat for seat in result.scalars().all()}
    missing = [seat_id for seat_id in seat_ids if seat_id not in found]
    if missing:
        raise InvalidReference("seat", missing)
    return [found[seat_id] for seat_id in seat_ids]


async def find_taken_seat_ids(db: AsyncSession, event_id: int, seat_ids: Sequence[int]) -> set[int]:
    if not seat_ids:
        return set()
    result = await db.execute(
        select(Ticket.seat_id).where(
            Ticket.event_id == event_id,
            Ticket.seat_id.in_(list(seat_ids)),
            Ticket.status != TICKET_CANCELLED,
        )
    )
    return {seat_id for seat_id in result.scalars().all()}


async def check_seats_free(db: AsyncSession, event: Event, seat_ids: Sequence[int]) -> list[Seat]:
    """
    Validate every candidate seat for the event.
    Inactive or already taken seats reject the whole request, naming all of them.
    """
    seats = await load_event_seats(db, event, seat_ids)
    taken = await find_taken_seat_ids(db, event.id, seat_ids)
    conflicts = [seat for seat in seats if seat.id in taken or not seat.is_active]
    if conflicts:
        raise SeatConflict([s.id for s in conflicts], [s.label for s in conflicts])
    return seats


def assign_positional(unit_count: int, seats: Sequence[Seat]) -> list[Optional[Seat]]:
    """Unit i gets seat i; units beyond the supplied seats get none."""
    return [seats[i] if i < len(seats) else None for i in range(unit_count)]


async def get_seat_map(db: AsyncSession, event: Event) -> list[SeatState]:
    if event.room_id is None:
        return []

    seats_result = await db.execute(
        select(Seat)
        .where(Seat.room_id == event.room_id)
        .order_by(Seat.row_label.asc(), Seat.number.asc())
    )
    seats = list(seats_result.scalars().all())
    taken = await find_taken_seat_ids(db, event.id, [s.id for s in seats])

    return [
        SeatState(
            seat_id=seat.id,
            row=seat.row_label,
            number=seat.number,
            label=seat.label,
            is_active=seat.is_active,
            taken=seat.id in taken,
        )
        for seat in seats
    ]
