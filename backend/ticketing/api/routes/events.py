"""
Read-only event views: availability (cached), allowance and seat map.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.event import (
    AllowanceResponse,
    AvailabilityResponse,
    SeatMapResponse,
    SeatStateResponse,
    TicketTypeAvailability,
)
from ticketing.services import event_service, order_service
from ticketing.services.cache_service import get_cached_availability, set_cached_availability
from ticketing.core.security import get_current_user_id
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/{event_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Remaining tickets per visible ticket type.
    Served from Redis when possible; invalidated after every order for the event.
    """
    cached = await get_cached_availability(event_id)
    if cached:
        logger.info("availability_cache_hit", event_id=event_id)
        cached["cached"] = True
        return AvailabilityResponse(**cached)

    ticket_types = await event_service.list_availability(db, event_id)
    response = AvailabilityResponse(
        event_id=event_id,
        ticket_types=[
            TicketTypeAvailability(
                ticket_type_id=tt.id,
                name=tt.name,
                price=tt.price,
                remaining=tt.remaining,
                status=tt.status,
            )
            for tt in ticket_types
        ],
    )

    await set_cached_availability(event_id, response.model_dump(mode="json"))
    return response


@router.get("/{event_id}/allowance", response_model=AllowanceResponse)
async def get_allowance(
    event_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """How many more tickets the caller may buy for this event. Advisory only."""
    allowance = await order_service.remaining_allowance(db, user_id, event_id)
    return AllowanceResponse(
        event_id=event_id,
        cap=allowance.cap,
        already_purchased=allowance.already_purchased,
        remaining=allowance.remaining,
    )


@router.get("/{event_id}/seats", response_model=SeatMapResponse)
async def get_seat_map(
    event_id: int,
    db: AsyncSession = Depends(get_db),
):
    seats = await event_service.get_seat_map(db, event_id)
    return SeatMapResponse(
        event_id=event_id,
        seats=[SeatStateResponse.model_validate(s) for s in seats],
    )
