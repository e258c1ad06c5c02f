"""
Ticket code and QR payload issuance.

Codes are short, uppercase and skip look-alike characters (0/O, 1/I) so
they can be read out at a door. Uniqueness is enforced by the UNIQUE
constraint on tickets.ticket_code; issue_codes() pre-checks candidates in
the current transaction so a collision normally costs one extra SELECT
instead of a restarted order.
"""

import base64
import io
import secrets
from typing import Callable, Optional

import qrcode
import qrcode.constants
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import get_settings
from ticketing.core.exceptions import CodeIssuanceExhausted
from ticketing.core.logging import get_logger
from ticketing.core.metrics import ticket_code_collisions
from ticketing.models.order import Ticket

logger = get_logger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

CodeGenerator = Callable[[], str]


def generate_code(length: Optional[int] = None) -> str:
    length = length or get_settings().TICKET_CODE_LENGTH
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def build_qr_payload(code: str) -> str:
    return f"{get_settings().QR_PAYLOAD_PREFIX}{code}"


def decode_qr_payload(payload: str) -> str:
    """Return the ticket code carried by a scanned payload."""
    prefix = get_settings().QR_PAYLOAD_PREFIX
    if not payload.startswith(prefix):
        raise ValueError("Not a ticket QR payload")
    code = payload[len(prefix):]
    if not code or any(ch not in CODE_ALPHABET for ch in code):
        raise ValueError("Malformed ticket code in QR payload")
    return code


def render_qr_png(payload: str) -> bytes:
    settings = get_settings()
    qr = qrcode.QRCode(
        version=None,  # auto
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=settings.QR_BOX_SIZE,
        border=settings.QR_BORDER,
    )
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def qr_data_uri(payload: str) -> str:
    encoded = base64.b64encode(render_qr_png(payload)).decode("ascii")
    return f"data:image/png;base64,{encoded}"


async def issue_codes(
    db: AsyncSession,
    count: int,
    generator: Optional[CodeGenerator] = None,
) -> list[str]:
    """
    Issue `count` distinct codes not present in the tickets table.
    Each round regenerates only the slots that collided.
    """
    generator = generator or generate_code
    max_rounds = get_settings().TICKET_CODE_MAX_ATTEMPTS
    accepted: list[str] = []

    for round_no in range(1, max_rounds + 1):
        needed = count - len(accepted)
        candidates = []
        for _ in range(needed):
            code = generator()
            if code in accepted or code in candidates:
                continue
            candidates.append(code)

        if candidates:
            result = await db.execute(
                select(Ticket.ticket_code).where(Ticket.ticket_code.in_(candidates))
            )
            existing = set(result.scalars().all())
            accepted.extend(code for code in candidates if code not in existing)
        else:
            existing = set()

        collisions = needed - len(candidates) + len(existing)
        if collisions:
            ticket_code_collisions.inc(collisions)
            logger.info("ticket_code_collision", collisions=collisions, round=round_no)

        if len(accepted) == count:
            return accepted

    logger.error("ticket_code_issuance_exhausted", requested=count, rounds=max_rounds)
    raise CodeIssuanceExhausted(max_rounds)
