"""
Ticket lookups for the owning user.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.exceptions import NotFound
from ticketing.models.order import Ticket


async def list_user_tickets(db: AsyncSession, user_id: int) -> list[Ticket]:
    """All tickets of a user, newest first."""
    result = await db.execute(
        select(Ticket)
        .where(Ticket.user_id == user_id)
        .order_by(Ticket.created_at.desc(), Ticket.id.desc())
    )
    return list(result.scalars().all())


async def get_user_ticket(db: AsyncSession, user_id: int, ticket_code: str) -> Ticket:
    """Preview a ticket by its code. Read-only: check-in happens elsewhere."""
    result = await db.execute(
        select(Ticket).where(Ticket.ticket_code == ticket_code, Ticket.user_id == user_id)
    )
    ticket = result.scalar_one_or_none()
    if not ticket:
        raise NotFound(f"Ticket {ticket_code} not found")
    return ticket
