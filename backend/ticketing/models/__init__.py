from ticketing.models.user import User
from ticketing.models.venue import Room, Seat
from ticketing.models.event import Event
from ticketing.models.ticket_type import TicketType
from ticketing.models.order import Order, Ticket

__all__ = ["User", "Room", "Seat", "Event", "TicketType", "Order", "Ticket"]
