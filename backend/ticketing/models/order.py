"""
Orders and the tickets they own.

Key design decisions:
- Orders are created once, already `paid`: there is no payment step
- `price_paid` snapshots the ticket type price at purchase time
- `ticket_code` is UNIQUE; code collisions surface as IntegrityError and
  restart the order attempt
- Partial unique index on (event_id, seat_id) for non-cancelled tickets is
  the storage-level backstop for "one buyer per seat per event"
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    Index,
    CheckConstraint,
    text,
)

from ticketing.db.base import Base, TimestampMixin

ORDER_PAID = "paid"

TICKET_VALID = "valid"
TICKET_USED = "used"
TICKET_CANCELLED = "cancelled"


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ORDER_PAID)
    payment_method = Column(String(50), nullable=False, default="auto")

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="check_order_total_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'paid', 'cancelled', 'refunded')", name="check_order_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, user={self.user_id}, total={self.total_amount}, status={self.status})>"


class Ticket(Base, TimestampMixin):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    ticket_type_id = Column(Integer, ForeignKey("ticket_types.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=True)
    ticket_code = Column(String(32), nullable=False, unique=True)
    qr_payload = Column(String(64), nullable=False)
    status = Column(String(20), nullable=False, default=TICKET_VALID)
    price_paid = Column(Numeric(10, 2), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("status IN ('valid', 'used', 'cancelled')", name="check_ticket_status"),
        # Quota lookups: non-cancelled tickets of a user for an event
        Index("ix_tickets_user_event", "user_id", "event_id"),
        Index(
            "uq_tickets_event_seat_active",
            "event_id",
            "seat_id",
            unique=True,
            postgresql_where=text("seat_id IS NOT NULL AND status <> 'cancelled'"),
            sqlite_where=text("seat_id IS NOT NULL AND status <> 'cancelled'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, code={self.ticket_code}, event={self.event_id}, status={self.status})>"
