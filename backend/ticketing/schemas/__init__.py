from ticketing.schemas.order import (
    OrderItem,
    OrderCreate,
    OrderResponse,
    OrderSummary,
    TicketPreviewResponse,
    TicketResponse,
)
from ticketing.schemas.event import (
    AllowanceResponse,
    AvailabilityResponse,
    SeatMapResponse,
    SeatStateResponse,
    TicketTypeAvailability,
)

__all__ = [
    "OrderItem", "OrderCreate", "OrderResponse", "OrderSummary", "TicketPreviewResponse", "TicketResponse",
    "AllowanceResponse", "AvailabilityResponse", "SeatMapResponse", "SeatStateResponse",
    "TicketTypeAvailability",
]
