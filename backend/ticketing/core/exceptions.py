"""
Booking error taxonomy.

Every error the booking engine raises derives from ``BookingError`` and
carries a stable ``ErrorCode``, a user-facing message, the HTTP status the
API layer maps it to, and whether re-sending the same request can succeed.

- ``OrderRejected`` subclasses are validation outcomes. They are raised
  before any write happens and retrying with the same input is pointless.
- ``TransientContention`` means the atomic commit could not be established
  because of concurrent writers. State is untouched and the whole call is
  safe to retry.
- ``CodeIssuanceExhausted`` is a system fault, not a user input problem.
"""

from enum import Enum
from typing import Any, Optional, Sequence


class ErrorCode(str, Enum):
    INVALID_REQUEST = "INVALID_REQUEST"
    INVALID_REFERENCE = "INVALID_REFERENCE"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    SEAT_CONFLICT = "SEAT_CONFLICT"
    TRANSIENT_CONTENTION = "TRANSIENT_CONTENTION"
    CODE_ISSUANCE_EXHAUSTED = "CODE_ISSUANCE_EXHAUSTED"
    NOT_FOUND = "NOT_FOUND"


class BookingError(Exception):
    code: ErrorCode = ErrorCode.INVALID_REQUEST
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        """Structured fields exposed to API clients and logs."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code.value, **self.context()}


class OrderRejected(BookingError):
    """Validation failure. Nothing was written."""


class InvalidOrderRequest(OrderRejected):
    code = ErrorCode.INVALID_REQUEST
    status_code = 422


class InvalidReference(OrderRejected):
    code = ErrorCode.INVALID_REFERENCE
    status_code = 404

    def __init__(self, kind: str, ref_ids: Sequence[Any]):
        self.kind = kind
        self.ref_ids = list(ref_ids)
        joined = ", ".join(str(r) for r in self.ref_ids)
        super().__init__(f"Unknown {kind}: {joined}")

    def context(self) -> dict[str, Any]:
        return {"kind": self.kind, "ids": self.ref_ids}


class QuotaExceeded(OrderRejected):
    code = ErrorCode.QUOTA_EXCEEDED
    status_code = 409

    def __init__(self, event_id: int, cap: int, already_purchased: int, requested: int):
        self.event_id = event_id
        self.cap = cap
        self.already_purchased = already_purchased
        self.requested = requested
        self.remaining = max(cap - already_purchased, 0)
        super().__init__(
            f"Ticket limit for this event is {cap} per person. "
            f"You may buy {self.remaining} more."
        )

    def context(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "cap": self.cap,
            "already_purchased": self.already_purchased,
            "requested": self.requested,
            "remaining": self.remaining,
        }


class InsufficientStock(OrderRejected):
    code = ErrorCode.INSUFFICIENT_STOCK
    status_code = 409

    def __init__(self, ticket_type_id: int, requested: int, remaining: int, name: Optional[str] = None):
        self.ticket_type_id = ticket_type_id
        self.requested = requested
        self.remaining = remaining
        label = name or f"ticket type {ticket_type_id}"
        if remaining == 0:
            message = f"{label} is no longer available"
        else:
            message = f"Only {remaining} left for {label}, requested {requested}"
        super().__init__(message)

    def context(self) -> dict[str, Any]:
        return {
            "ticket_type_id": self.ticket_type_id,
            "requested": self.requested,
            "remaining": self.remaining,
        }


class SeatConflict(OrderRejected):
    code = ErrorCode.SEAT_CONFLICT
    status_code = 409

    def __init__(self, seat_ids: Sequence[int], labels: Optional[Sequence[str]] = None):
        self.seat_ids = list(seat_ids)
        self.labels = list(labels) if labels else [str(s) for s in self.seat_ids]
        super().__init__(f"Seats already taken: {', '.join(self.labels)}")

    def context(self) -> dict[str, Any]:
        return {"seat_ids": self.seat_ids, "seats": self.labels}


class TransientContention(BookingError):
    code = ErrorCode.TRANSIENT_CONTENTION
    status_code = 503
    retryable = True

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__("Booking failed due to high demand. Please try again.")


class CodeIssuanceExhausted(BookingError):
    code = ErrorCode.CODE_ISSUANCE_EXHAUSTED
    status_code = 500

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__("Could not issue tickets right now. Please try again later.")


class NotFound(BookingError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
