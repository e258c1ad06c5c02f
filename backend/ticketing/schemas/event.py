"""
Pydantic schemas for the read-only event views.
"""

from decimal import Decimal
from pydantic import BaseModel


class TicketTypeAvailability(BaseModel):
    ticket_type_id: int
    name: str
    price: Decimal
    remaining: int
    status: str


class AvailabilityResponse(BaseModel):
    event_id: int
    ticket_types: list[TicketTypeAvailability]
    cached: bool = False


class AllowanceResponse(BaseModel):
    event_id: int
    cap: int
    already_purchased: int
    remaining: int


class SeatStateResponse(BaseModel):
    seat_id: int
    row: str
    number: int
    label: str
    is_active: bool
    taken: bool

    model_config = {"from_attributes": True}


class SeatMapResponse(BaseModel):
    event_id: int
    seats: list[SeatStateResponse]
