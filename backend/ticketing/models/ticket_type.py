"""
Ticket type with its stock counters.

Key design decisions:
- `quantity_sold` is denormalized (avoids COUNT over tickets on every order)
  and is the single point of write contention between concurrent orders
- CHECK constraints are the last line of defence against oversell
- status is stored, but the engine only moves it active -> sold_out
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint

from ticketing.db.base import Base, TimestampMixin

TICKET_TYPE_ACTIVE = "active"
TICKET_TYPE_SOLD_OUT = "sold_out"
TICKET_TYPE_HIDDEN = "hidden"


class TicketType(Base, TimestampMixin):
    __tablename__ = "ticket_types"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    quantity_total = Column(Integer, nullable=False)
    quantity_sold = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=TICKET_TYPE_ACTIVE)

    __table_args__ = (
        CheckConstraint("quantity_sold >= 0", name="check_ticket_type_sold_non_negative"),
        CheckConstraint("quantity_sold <= quantity_total", name="check_ticket_type_sold_lte_total"),
        CheckConstraint("price >= 0", name="check_ticket_type_price_non_negative"),
        CheckConstraint(
            "status IN ('active', 'sold_out', 'hidden')", name="check_ticket_type_status"
        ),
    )

    @property
    def remaining(self) -> int:
        return self.quantity_total - self.quantity_sold

    def __repr__(self) -> str:
        return (
            f"<TicketType(id={self.id}, event={self.event_id}, "
            f"sold={self.quantity_sold}/{self.quantity_total}, status={self.status})>"
        )
