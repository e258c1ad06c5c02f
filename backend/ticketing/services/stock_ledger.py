"""
Stock ledger: per ticket type sold/total counters.

Validation is pure (it only looks at counters already loaded in the
current transaction). The write is a conditional UPDATE that only lands if
`quantity_sold` still holds the value the validation saw:

  UPDATE ticket_types
     SET quantity_sold = :read + :n, status = :new_status
   WHERE id = :id AND quantity_sold = :read AND status = 'active'

A zero rowcount means another order moved the counter in between; the
caller restarts its whole validation-and-commit sequence.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Mapping

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ticketing.core.exceptions import InsufficientStock, InvalidOrderRequest, InvalidReference
from ticketing.models.ticket_type import TicketType, TICKET_TYPE_ACTIVE, TICKET_TYPE_SOLD_OUT


@dataclass(frozen=True)
class LineItem:
    ticket_type_id: int
    quantity: int


def normalize_line_items(items: Iterable[LineItem]) -> list[LineItem]:
    """Drop zero-quantity lines; reject negative quantities and empty orders."""
    lines = []
    for item in items:
        if item.quantity < 0:
            raise InvalidOrderRequest(
                f"Quantity for ticket type {item.ticket_type_id} must not be negative"
            )
        if item.quantity > 0:
            lines.append(item)
    if not lines:
        raise InvalidOrderRequest("Order must contain at least one ticket")
    return lines


def requested_quantities(lines: Iterable[LineItem]) -> "OrderedDict[int, int]":
    """Total requested units per ticket type, in first-seen order."""
    totals: "OrderedDict[int, int]" = OrderedDict()
    for line in lines:
        totals[line.ticket_type_id] = totals.get(line.ticket_type_id, 0) + line.quantity
    return totals


async def load_ticket_types(db: AsyncSession, ticket_type_ids: Iterable[int]) -> dict[int, TicketType]:
    ids = list(dict.fromkeys(ticket_type_ids))
    result = await db.execute(select(TicketType).where(TicketType.id.in_(ids)))
    found = {tt.id: tt for tt in result.scalars().all()}

    missing = [tt_id for tt_id in ids if tt_id not in found]
    if missing:
        raise InvalidReference("ticket type", missing)
    return found


def check_stock(ticket_types: Mapping[int, TicketType], requested: Mapping[int, int]) -> None:
    """Reject the whole request if any ticket type cannot cover its quantity."""
    for tt_id, quantity in requested.items():
        ticket_type = ticket_types[tt_id]
        if ticket_type.status != TICKET_TYPE_ACTIVE:
            raise InsufficientStock(tt_id, quantity, 0, ticket_type.name)
        if ticket_type.quantity_sold + quantity > ticket_type.quantity_total:
            raise InsufficientStock(tt_id, quantity, max(ticket_type.remaining, 0), ticket_type.name)


def status_after_sale(ticket_type: TicketType, new_sold: int) -> str:
    if ticket_type.status == TICKET_TYPE_ACTIVE and new_sold >= ticket_type.quantity_total:
        return TICKET_TYPE_SOLD_OUT
    return ticket_type.status


async def increment_sold(db: AsyncSession, ticket_type: TicketType, quantity: int) -> bool:
    """
    Conditionally add `quantity` to the sold counter.
    Returns False when the counter changed since it was read.
    """
    read_sold = ticket_type.quantity_sold
    new_sold = read_sold + quantity
    new_status = status_after_sale(ticket_type, new_sold)
    result = await db.execute(
        update(TicketType)
        .where(
            TicketType.id == ticket_type.id,
            TicketType.quantity_sold == read_sold,
            TicketType.status == TICKET_TYPE_ACTIVE,
        )
        .values(quantity_sold=new_sold, status=new_status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    set_committed_value(ticket_type, "quantity_sold", new_sold)
    set_committed_value(ticket_type, "status", new_status)
    return True
