"""
Translate booking errors into JSON responses.

Rejections carry enough context for the client to fix the request
(remaining allowance, remaining stock, conflicting seats).
"""

from fastapi import Request
from fastapi.responses import JSONResponse

from ticketing.core.exceptions import BookingError, TransientContention
from ticketing.core.logging import get_logger

logger = get_logger(__name__)


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("booking_fault", code=exc.code.value, error=exc.message)
    headers = {"Retry-After": "1"} if isinstance(exc, TransientContention) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


EXCEPTION_HANDLERS = {
    BookingError: booking_error_handler,
}


def register_exception_handlers(app) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
