"""
Order endpoints: place an order, list and read the caller's orders.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.db.session import get_db
from ticketing.schemas.order import OrderCreate, OrderResponse, OrderSummary, TicketResponse
from ticketing.services import order_service
from ticketing.services.order_service import PlacedOrder
from ticketing.services.stock_ledger import LineItem
from ticketing.core.config import get_settings
from ticketing.core.exceptions import TransientContention
from ticketing.core.security import get_current_user_id
from ticketing.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/orders", tags=["Orders"])


def _to_response(placed: PlacedOrder) -> OrderResponse:
    return OrderResponse(
        order=OrderSummary.model_validate(placed.order),
        tickets=[TicketResponse.model_validate(t) for t in placed.tickets],
    )


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Buy tickets, optionally choosing seats.

    Seats are assigned positionally to the requested units in item order.
    Contention is retried transparently a few times before answering 503.
    Validation failures (quota, stock, seats, unknown references) are
    returned immediately and must not be retried with the same body.
    """
    items = [LineItem(i.ticket_type_id, i.quantity) for i in order_data.items]
    retries = get_settings().ORDER_CLIENT_RETRIES

    for retry in range(retries + 1):
        try:
            placed = await order_service.place_order(db, user_id, items, order_data.seat_ids)
            return _to_response(placed)
        except TransientContention:
            if retry == retries:
                raise
            logger.info("order_client_retry", user_id=user_id, retry=retry + 1)


@router.get("/", response_model=list[OrderResponse])
async def list_my_orders(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Orders of the authenticated user, newest first."""
    orders = await order_service.list_user_orders(db, user_id)
    return [_to_response(placed) for placed in orders]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_my_order(
    order_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    placed = await order_service.get_user_order(db, user_id, order_id)
    return _to_response(placed)
