"""
Ticket endpoints for the owning user: listing, preview by code, QR image.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.order import TicketPreviewResponse, TicketResponse
from ticketing.services import ticket_service
from ticketing.services.ticket_codes import qr_data_uri, render_qr_png
from ticketing.core.security import get_current_user_id

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.get("/", response_model=list[TicketResponse])
async def list_my_tickets(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return await ticket_service.list_user_tickets(db, user_id)


@router.get("/{ticket_code}", response_model=TicketPreviewResponse)
async def get_my_ticket(
    ticket_code: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    ticket = await ticket_service.get_user_ticket(db, user_id, ticket_code)
    return TicketPreviewResponse(
        **TicketResponse.model_validate(ticket).model_dump(),
        qr_data_uri=qr_data_uri(ticket.qr_payload),
    )


@router.get("/{ticket_code}/qr.png", response_class=Response)
async def get_my_ticket_qr(
    ticket_code: str,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """PNG rendering of the ticket's QR payload."""
    ticket = await ticket_service.get_user_ticket(db, user_id, ticket_code)
    return Response(content=render_qr_png(ticket.qr_payload), media_type="image/png")
