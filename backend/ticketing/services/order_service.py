"""
Order service: turns requested ticket quantities (and optional seats) into
one paid order with its tickets, atomically.

CONCURRENCY STRATEGY: Optimistic Claims with Full Restart
=========================================================

Problem:
  Two buyers race for the last ticket, the same seat, or the same user
  fires two orders that together exceed the per-event cap. Each request
  reads "available", each writes, both succeed. Result: oversell.

Solution:
  Every attempt runs in one database transaction:

  1. Read: ticket types, their events, the user's non-cancelled ticket
     counts, the stock counters and the taken seats.
  2. Validate: quota, stock and seats. Any failure raises a typed
     OrderRejected before a single row is written.
  3. Claim, in id order to keep lock acquisition consistent:
       UPDATE events SET version = version + 1
        WHERE id = :id AND version = :read_version
       UPDATE ticket_types SET quantity_sold = :read + n, status = ...
        WHERE id = :id AND quantity_sold = :read AND status = 'active'
     The event claim serialises all orders touching the same event, so
     quota and seat decisions cannot interleave. The ticket type claim
     protects the counter itself.
  4. Write the order and its tickets, then commit.

  If a claim updates zero rows, the database reports lock contention
  (lock timeout, deadlock, serialization failure, SQLite busy), or a unique
  constraint fires (ticket code, seat), the transaction is rolled back and
  the attempt restarts from step 1 after a short jittered backoff. The
  next attempt re-reads committed state, so it either succeeds or turns
  into the proper typed rejection. After ORDER_MAX_ATTEMPTS the caller
  gets TransientContention with nothing written.

  CHECK constraints on ticket_types and the partial unique index on
  tickets(event_id, seat_id) are the final safety net.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ticketing.core.config import get_settings
from ticketing.core.exceptions import (
    CodeIssuanceExhausted,
    InvalidOrderRequest,
    InvalidReference,
    NotFound,
    OrderRejected,
    TransientContention,
)
from ticketing.core.logging import get_logger
from ticketing.core.metrics import (
    order_latency,
    record_order_outcome,
    record_order_restart,
    tickets_issued,
)
from ticketing.models.event import Event
from ticketing.models.order import Order, Ticket, ORDER_PAID, TICKET_VALID
from ticketing.services import (
    cache_service,
    event_service,
    quota_service,
    seat_map,
    stock_ledger,
    ticket_codes,
)
from ticketing.services.stock_ledger import LineItem
from ticketing.services.ticket_codes import CodeGenerator

logger = get_logger(__name__)

# lock_not_available, deadlock_detected, serialization_failure
_CONTENTION_SQLSTATES = {"55P03", "40P01", "40001"}
_UNIQUE_VIOLATION_SQLSTATE = "23505"


@dataclass
class PlacedOrder:
    order: Order
    tickets: list[Ticket]

    @property
    def event_ids(self) -> set[int]:
        return {t.event_id for t in self.tickets}


class _OptimisticConflict(Exception):
    """A conditional write lost the race; restart the attempt."""

    def __init__(self, reason: str, ref_id: int):
        self.reason = reason
        self.ref_id = ref_id
        super().__init__(f"{reason} on {ref_id}")


def _is_contention(exc: DBAPIError) -> bool:
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _CONTENTION_SQLSTATES:
        return True
    message = str(orig).lower()
    return "database is locked" in message or "database table is locked" in message


def _is_unique_violation(exc: IntegrityError) -> bool:
    """Only a unique violation can succeed on a re-read; FK, CHECK and NOT NULL cannot."""
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is not None:
        return sqlstate == _UNIQUE_VIOLATION_SQLSTATE
    return "unique constraint failed" in str(orig).lower()


def _normalize_seat_ids(seat_ids: Optional[Sequence[int]], unit_count: int) -> list[int]:
    seat_ids = list(seat_ids or [])
    if len(set(seat_ids)) != len(seat_ids):
        raise InvalidOrderRequest("The same seat was selected more than once")
    if len(seat_ids) > unit_count:
        raise InvalidOrderRequest(
            f"{len(seat_ids)} seats selected for {unit_count} tickets"
        )
    return seat_ids


async def _load_events(db: AsyncSession, event_ids: Iterable[int]) -> dict[int, Event]:
    ids = sorted(set(event_ids))
    result = await db.execute(select(Event).where(Event.id.in_(ids)))
    found = {event.id: event for event in result.scalars().all()}
    missing = [event_id for event_id in ids if event_id not in found]
    if missing:
        raise InvalidReference("event", missing)
    return found


async def _claim_event(db: AsyncSession, event: Event) -> bool:
    read_version = event.version
    result = await db.execute(
        update(Event)
        .where(Event.id == event.id, Event.version == read_version)
        .values(version=read_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False
    set_committed_value(event, "version", read_version + 1)
    return True


async def _bound_lock_waits(db: AsyncSession) -> None:
    if db.get_bind().dialect.name == "postgresql":
        timeout_ms = int(get_settings().DB_LOCK_TIMEOUT_MS)
        await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))


async def _attempt(
    db: AsyncSession,
    user_id: int,
    lines: list[LineItem],
    seat_ids: list[int],
    code_generator: Optional[CodeGenerator],
) -> PlacedOrder:
    await _bound_lock_waits(db)

    # 1. Resolve ticket types and group requested units by event
    requested = stock_ledger.requested_quantities(lines)
    ticket_types = await stock_ledger.load_ticket_types(db, requested.keys())
    events = await _load_events(db, (tt.event_id for tt in ticket_types.values()))

    per_event: dict[int, int] = {}
    for tt_id, quantity in requested.items():
        event_id = ticket_types[tt_id].event_id
        per_event[event_id] = per_event.get(event_id, 0) + quantity

    # 2. Quota, per event touched
    for event_id in sorted(per_event):
        allowance = await quota_service.get_allowance(db, user_id, events[event_id])
        quota_service.check_quota(allowance, per_event[event_id])

    # 3. Stock, all line items
    stock_ledger.check_stock(ticket_types, requested)

    # 4. Seats, against the event of the first line item
    seats = []
    if seat_ids:
        if len(events) > 1:
            raise InvalidOrderRequest("Seat selection is only possible for a single event per order")
        first_event = events[ticket_types[lines[0].ticket_type_id].event_id]
        seats = await seat_map.check_seats_free(db, first_event, seat_ids)

    # 5. Commit step: claim, then write
    for event_id in sorted(events):
        if not await _claim_event(db, events[event_id]):
            raise _OptimisticConflict("version_conflict", event_id)

    for tt_id in sorted(requested):
        if not await stock_ledger.increment_sold(db, ticket_types[tt_id], requested[tt_id]):
            raise _OptimisticConflict("version_conflict", tt_id)

    units = [ticket_types[line.ticket_type_id] for line in lines for _ in range(line.quantity)]
    codes = await ticket_codes.issue_codes(db, len(units), code_generator)
    unit_seats = seat_map.assign_positional(len(units), seats)

    total = sum(
        (Decimal(ticket_types[tt_id].price) * quantity for tt_id, quantity in requested.items()),
        Decimal("0"),
    )
    order = Order(user_id=user_id, total_amount=total, status=ORDER_PAID)
    db.add(order)
    await db.flush()

    tickets = []
    for ticket_type, code, seat in zip(units, codes, unit_seats):
        tickets.append(
            Ticket(
                order_id=order.id,
                ticket_type_id=ticket_type.id,
                event_id=ticket_type.event_id,
                user_id=user_id,
                seat_id=seat.id if seat is not None else None,
                ticket_code=code,
                qr_payload=ticket_codes.build_qr_payload(code),
                status=TICKET_VALID,
                price_paid=ticket_type.price,
                used_at=None,
            )
        )
    db.add_all(tickets)
    await db.flush()

    return PlacedOrder(order=order, tickets=tickets)


async def place_order(
    db: AsyncSession,
    user_id: int,
    items: Iterable[LineItem],
    seat_ids: Optional[Sequence[int]] = None,
    *,
    max_attempts: Optional[int] = None,
    code_generator: Optional[CodeGenerator] = None,
) -> PlacedOrder:
    """
    Place a paid order for the requested ticket quantities.

    Commits its own transaction on success. Raises an OrderRejected subclass
    on validation failure, TransientContention when it lost every optimistic
    race, CodeIssuanceExhausted when no free ticket code could be found.
    In every failure case nothing is written.
    """
    settings = get_settings()
    attempts = max_attempts or settings.ORDER_MAX_ATTEMPTS

    lines = stock_ledger.normalize_line_items(items)
    unit_count = sum(line.quantity for line in lines)
    seat_ids = _normalize_seat_ids(seat_ids, unit_count)

    start_time = time.perf_counter()
    try:
        for attempt in range(1, attempts + 1):
            try:
                placed = await _attempt(db, user_id, lines, seat_ids, code_generator)
                await db.commit()
            except OrderRejected as e:
                await db.rollback()
                record_order_outcome(f"rejected_{e.code.value.lower()}")
                logger.warning(
                    "order_rejected",
                    user_id=user_id,
                    code=e.code.value,
                    reason=e.message,
                    attempt=attempt,
                    **e.context(),
                )
                raise
            except CodeIssuanceExhausted:
                await db.rollback()
                record_order_outcome("error")
                raise
            except _OptimisticConflict as e:
                reason, detail = e.reason, str(e)
            except IntegrityError as e:
                if not _is_unique_violation(e):
                    await db.rollback()
                    record_order_outcome("error")
                    logger.error("order_integrity_error", user_id=user_id, error=str(e.orig))
                    raise
                reason, detail = "integrity", str(e.orig)
            except DBAPIError as e:
                if not _is_contention(e):
                    await db.rollback()
                    record_order_outcome("error")
                    raise
                reason, detail = "lock_contention", str(e.orig)
            else:
                tickets_issued.inc(len(placed.tickets))
                record_order_outcome("placed")
                logger.info(
                    "order_placed",
                    order_id=placed.order.id,
                    user_id=user_id,
                    tickets=len(placed.tickets),
                    total=str(placed.order.total_amount),
                    attempt=attempt,
                )
                await cache_service.invalidate_availability(placed.event_ids)
                return placed

            # Lost a race: nothing of this attempt survives the rollback
            await db.rollback()
            record_order_restart(reason)
            logger.info("order_retry", user_id=user_id, attempt=attempt, reason=reason, detail=detail)
            if attempt < attempts:
                backoff = settings.ORDER_RETRY_BACKOFF_MS / 1000.0
                await asyncio.sleep(random.uniform(0, backoff * attempt))

        record_order_outcome("contention")
        logger.error("order_contention_exhausted", user_id=user_id, attempts=attempts)
        raise TransientContention(attempts)
    finally:
        order_latency.observe(time.perf_counter() - start_time)


async def remaining_allowance(db: AsyncSession, user_id: int, event_id: int) -> quota_service.Allowance:
    """
    Advisory cap/purchased/remaining triple for display.
    Takes no locks; never use it to decide whether an order may proceed.
    """
    event = await event_service.get_event(db, event_id)
    return await quota_service.get_allowance(db, user_id, event)


async def list_user_orders(db: AsyncSession, user_id: int) -> list[PlacedOrder]:
    orders_result = await db.execute(
        select(Order).where(Order.user_id == user_id).order_by(Order.created_at.desc(), Order.id.desc())
    )
    orders = list(orders_result.scalars().all())
    if not orders:
        return []

    tickets_result = await db.execute(
        select(Ticket)
        .where(Ticket.order_id.in_([o.id for o in orders]))
        .order_by(Ticket.id.asc())
    )
    by_order: dict[int, list[Ticket]] = {o.id: [] for o in orders}
    for ticket in tickets_result.scalars().all():
        by_order[ticket.order_id].append(ticket)
    return [PlacedOrder(order=o, tickets=by_order[o.id]) for o in orders]


async def get_user_order(db: AsyncSession, user_id: int, order_id: int) -> PlacedOrder:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.user_id == user_id)
    )
    order = result.scalar_one_or_none()
    if not order:
        raise NotFound(f"Order {order_id} not found")

    tickets_result = await db.execute(
        select(Ticket).where(Ticket.order_id == order.id).order_by(Ticket.id.asc())
    )
    return PlacedOrder(order=order, tickets=list(tickets_result.scalars().all()))
