"""
Event reference data as seen by the booking engine.

Key design decisions:
- `max_tickets_per_user` is nullable; NULL means the configured default cap
- `room_id` is optional: events without a room have no seat map
- `version` is bumped by every committed order touching the event. Orders
  for the same event claim it with a conditional UPDATE, which serialises
  their quota and seat decisions without holding locks across reads.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint

from ticketing.db.base import Base, TimestampMixin


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(255), nullable=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True, index=True)
    max_tickets_per_user = Column(Integer, nullable=True)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(
            "max_tickets_per_user IS NULL OR max_tickets_per_user > 0",
            name="check_event_cap_positive",
        ),
        Index("ix_events_starts_at", "starts_at"),
    )

    def __repr__(self) -> str:
        return f"<Event(id={self.id}, title={self.title}, version={self.version})>"
