"""
Rooms and their seats.

A seat's "taken" state is never stored here. It is derived per event from
non-cancelled tickets referencing the seat (see services/seat_map.py).
"""

from sqlalchemy import Column, Integer, String, Boolean, ForeignKey, UniqueConstraint

from ticketing.db.base import Base, TimestampMixin


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, name={self.name})>"


class Seat(Base):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    row_label = Column(String(10), nullable=False)
    number = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("room_id", "row_label", "number", name="uq_seat_position"),
    )

    @property
    def label(self) -> str:
        return f"{self.row_label}{self.number}"

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, room={self.room_id}, label={self.label})>"
