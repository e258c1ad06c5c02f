"""
Tests for ticket code generation, QR payloads and collision handling.
"""

import pytest

from conftest import add_existing_tickets
from ticketing.core.exceptions import CodeIssuanceExhausted
from ticketing.services import ticket_codes
from ticketing.services.ticket_codes import CODE_ALPHABET


def test_generated_code_uses_readable_alphabet():
    code = ticket_codes.generate_code()

    assert len(code) == 12
    assert set(code) <= set(CODE_ALPHABET)
    for ambiguous in "01OI":
        assert ambiguous not in CODE_ALPHABET


def test_qr_payload_round_trip():
    payload = ticket_codes.build_qr_payload("ABCD2345WXYZ")

    assert payload == "TKT:ABCD2345WXYZ"
    assert ticket_codes.decode_qr_payload(payload) == "ABCD2345WXYZ"


@pytest.mark.parametrize("payload", ["https://example.com/ABCD", "TKT:", "TKT:abc0"])
def test_decode_rejects_foreign_payloads(payload):
    with pytest.raises(ValueError):
        ticket_codes.decode_qr_payload(payload)


def test_render_qr_png():
    png = ticket_codes.render_qr_png("TKT:ABCD2345WXYZ")
    assert png.startswith(b"\x89PNG")

    uri = ticket_codes.qr_data_uri("TKT:ABCD2345WXYZ")
    assert uri.startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_issue_codes_skips_existing_and_duplicate_candidates(db_session, test_user, standard_tickets):
    await add_existing_tickets(db_session, test_user, standard_tickets, 1)
    taken = f"EXIST{test_user.id}{standard_tickets.id}0V"

    candidates = iter([taken, "FRESHAAA", "FRESHAAA", "FRESHBBB"])
    codes = await ticket_codes.issue_codes(db_session, 2, lambda: next(candidates))

    assert codes == ["FRESHAAA", "FRESHBBB"]


@pytest.mark.asyncio
async def test_issue_codes_gives_up_after_bounded_rounds(db_session, test_user, standard_tickets):
    await add_existing_tickets(db_session, test_user, standard_tickets, 1)
    taken = f"EXIST{test_user.id}{standard_tickets.id}0V"

    with pytest.raises(CodeIssuanceExhausted) as exc_info:
        await ticket_codes.issue_codes(db_session, 1, lambda: taken)

    assert exc_info.value.attempts == 5
