"""
Pytest fixtures for test database, sessions, client, and authentication.

Every test gets its own SQLite database file, so concurrent sessions are
real, independent connections racing on the same store.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./ticketing-test.db")
os.environ["REDIS_ENABLED"] = "false"
os.environ["ORDER_RETRY_BACKOFF_MS"] = "5"

from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketing.main import app
from ticketing.db.base import Base
from ticketing.db.session import build_engine, get_db
from ticketing.core.security import create_access_token
from ticketing.models import Event, Order, Room, Seat, Ticket, TicketType, User
from ticketing.services import order_service


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ticketing.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests each get a fresh session on the test database."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _add(session: AsyncSession, obj):
    session.add(obj)
    await session.commit()
    await session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="buyer@example.com"))


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _add(db_session, User(email="rival@example.com"))


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict:
    token = create_access_token(data={"sub": str(test_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def room(db_session: AsyncSession) -> Room:
    room = await _add(db_session, Room(name="Main Hall"))
    db_session.add_all(
        [Seat(room_id=room.id, row_label="A", number=n) for n in (1, 2, 3)]
        + [Seat(room_id=room.id, row_label="B", number=1, is_active=False)]
    )
    await db_session.commit()
    return room


@pytest_asyncio.fixture
async def seats(db_session: AsyncSession, room: Room) -> dict[str, Seat]:
    result = await db_session.execute(select(Seat).where(Seat.room_id == room.id))
    return {seat.label: seat for seat in result.scalars().all()}


@pytest_asyncio.fixture
async def test_event(db_session: AsyncSession, room: Room) -> Event:
    """Seated event with a cap of 4 tickets per user."""
    return await _add(db_session, Event(title="Test Concert", room_id=room.id, max_tickets_per_user=4))


@pytest_asyncio.fixture
async def standard_tickets(db_session: AsyncSession, test_event: Event) -> TicketType:
    return await _add(
        db_session,
        TicketType(event_id=test_event.id, name="Standard", price=Decimal("25.00"), quantity_total=100),
    )


@pytest_asyncio.fixture
async def vip_tickets(db_session: AsyncSession, test_event: Event) -> TicketType:
    return await _add(
        db_session,
        TicketType(event_id=test_event.id, name="VIP", price=Decimal("60.00"), quantity_total=2),
    )


@pytest_asyncio.fixture
async def last_ticket(db_session: AsyncSession) -> TicketType:
    """An unseated event whose only ticket type has one unit left."""
    event = await _add(db_session, Event(title="Tiny Gig"))
    return await _add(
        db_session,
        TicketType(event_id=event.id, name="Door", price=Decimal("10.00"), quantity_total=1),
    )


async def count_rows(session_factory, model, *criteria) -> int:
    async with session_factory() as session:
        result = await session.execute(select(model).where(*criteria))
        return len(result.scalars().all())


async def reload(session_factory, model, obj_id):
    async with session_factory() as session:
        return await session.get(model, obj_id)


async def add_existing_tickets(session: AsyncSession, user: User, ticket_type: TicketType, count: int, status="valid"):
    """Tickets bought earlier, bypassing the order service."""
    order = Order(user_id=user.id, total_amount=ticket_type.price * count)
    session.add(order)
    await session.flush()
    session.add_all(
        [
            Ticket(
                order_id=order.id,
                ticket_type_id=ticket_type.id,
                event_id=ticket_type.event_id,
                user_id=user.id,
                ticket_code=f"EXIST{user.id}{ticket_type.id}{i}{status[:1].upper()}",
                qr_payload=f"TKT:EXIST{user.id}{ticket_type.id}{i}",
                status=status,
                price_paid=ticket_type.price,
            )
            for i in range(count)
        ]
    )
    await session.commit()
    return order


async def place(session_factory, user_id: int, items, seat_ids=None, **kwargs):
    """Place an order on its own session, like an independent request would."""
    async with session_factory() as session:
        return await order_service.place_order(session, user_id, items, seat_ids, **kwargs)
