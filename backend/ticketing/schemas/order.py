"""
Pydantic schemas for order placement and order/ticket responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class OrderItem(BaseModel):
    ticket_type_id: int
    quantity: int = Field(..., ge=0, le=100)


class OrderCreate(BaseModel):
    items: list[OrderItem] = Field(..., min_length=1)
    seat_ids: list[int] = Field(default_factory=list)


class TicketResponse(BaseModel):
    id: int
    ticket_code: str
    qr_payload: str
    status: str
    price_paid: Decimal
    event_id: int
    ticket_type_id: int
    seat_id: Optional[int]
    used_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderSummary(BaseModel):
    id: int
    total_amount: Decimal
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    order: OrderSummary
    tickets: list[TicketResponse]


class TicketPreviewResponse(TicketResponse):
    """A single ticket as shown to its owner, with the QR image inline."""

    qr_data_uri: str
