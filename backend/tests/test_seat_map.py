"""
Tests for seat availability derived from live tickets.
"""

import pytest

from ticketing.core.exceptions import InvalidReference, SeatConflict
from ticketing.models import Event, Order, Ticket
from ticketing.services import seat_map


async def _sell_seat(session, user, ticket_type, seat, code, status="valid"):
    order = Order(user_id=user.id, total_amount=ticket_type.price)
    session.add(order)
    await session.flush()
    session.add(
        Ticket(
            order_id=order.id,
            ticket_type_id=ticket_type.id,
            event_id=ticket_type.event_id,
            user_id=user.id,
            seat_id=seat.id,
            ticket_code=code,
            qr_payload=f"TKT:{code}",
            status=status,
            price_paid=ticket_type.price,
        )
    )
    await session.commit()


def test_assign_positional_leaves_extra_units_unseated():
    assigned = seat_map.assign_positional(3, ["A1", "A2"])
    assert assigned == ["A1", "A2", None]


@pytest.mark.asyncio
async def test_free_seats_pass_in_request_order(db_session, test_event, seats):
    result = await seat_map.check_seats_free(db_session, test_event, [seats["A3"].id, seats["A1"].id])
    assert [s.label for s in result] == ["A3", "A1"]


@pytest.mark.asyncio
async def test_taken_seat_conflicts(db_session, test_user, test_event, standard_tickets, seats):
    await _sell_seat(db_session, test_user, standard_tickets, seats["A1"], "TAKENA1")

    with pytest.raises(SeatConflict) as exc_info:
        await seat_map.check_seats_free(db_session, test_event, [seats["A1"].id, seats["A2"].id])

    assert exc_info.value.seat_ids == [seats["A1"].id]
    assert exc_info.value.labels == ["A1"]


@pytest.mark.asyncio
async def test_cancelled_ticket_frees_seat(db_session, test_user, test_event, standard_tickets, seats):
    await _sell_seat(db_session, test_user, standard_tickets, seats["A2"], "CANCELA2", status="cancelled")

    result = await seat_map.check_seats_free(db_session, test_event, [seats["A2"].id])
    assert [s.label for s in result] == ["A2"]


@pytest.mark.asyncio
async def test_inactive_seat_conflicts(db_session, test_event, seats):
    with pytest.raises(SeatConflict) as exc_info:
        await seat_map.check_seats_free(db_session, test_event, [seats["B1"].id])
    assert exc_info.value.labels == ["B1"]


@pytest.mark.asyncio
async def test_unknown_seat_is_invalid_reference(db_session, test_event, seats):
    with pytest.raises(InvalidReference) as exc_info:
        await seat_map.check_seats_free(db_session, test_event, [seats["A1"].id, 9999])
    assert exc_info.value.kind == "seat"
    assert exc_info.value.ref_ids == [9999]


@pytest.mark.asyncio
async def test_event_without_room_has_no_seats(db_session, seats):
    event = Event(title="Standing only", room_id=None)
    db_session.add(event)
    await db_session.commit()

    assert await seat_map.get_seat_map(db_session, event) == []
    with pytest.raises(InvalidReference):
        await seat_map.check_seats_free(db_session, event, [seats["A1"].id])


@pytest.mark.asyncio
async def test_seat_map_marks_taken_seats(db_session, test_user, test_event, standard_tickets, seats):
    await _sell_seat(db_session, test_user, standard_tickets, seats["A2"], "TAKENA2")

    states = await seat_map.get_seat_map(db_session, test_event)

    assert [(s.label, s.taken, s.is_active) for s in states] == [
        ("A1", False, True),
        ("A2", True, True),
        ("A3", False, True),
        ("B1", False, False),
    ]
