from datetime import date

import pytest

from bizledger.models import DocumentSequence
from bizledger.services import document_service
from bizledger.services.document_service import (
    DocumentSequenceError,
    allocate_reference_number,
    format_reference_number,
    next_reference_number,
)
from bizledger.validation import ReferenceCollisionError


def test_format_reference_number():
    assert format_reference_number("SALE", date(2026, 2, 15), 7) == "SALE-20260215-0007"
    assert format_reference_number("INV", date(2026, 12, 1), 12345) == "INV-20261201-12345"


def test_numbers_are_sequential_per_business(db_session, business, other_business):
    day = date(2026, 2, 15)
    assert next_reference_number(business.id, "SALE", on_date=day) == "SALE-20260215-0001"
    assert next_reference_number(business.id, "SALE", on_date=day) == "SALE-20260215-0002"
    assert next_reference_number(other_business.id, "SALE", on_date=day) == "SALE-20260215-0001"
    assert next_reference_number(business.id, "INVOICE", on_date=day) == "INV-20260215-0001"


def test_counter_does_not_reset_across_days(db_session, business):
    assert next_reference_number(business.id, on_date=date(2026, 2, 15)) == "SALE-20260215-0001"
    assert next_reference_number(business.id, on_date=date(2026, 2, 16)) == "SALE-20260216-0002"


def test_sequence_row_tracks_next_number(db_session, business):
    next_reference_number(business.id, "BOOKING")
    next_reference_number(business.id, "BOOKING")
    seq = db_session.query(DocumentSequence).filter_by(business_id=business.id, document_type="BOOKING").one()
    assert seq.next_number == 3


def test_unknown_document_type(db_session, business):
    with pytest.raises(DocumentSequenceError):
        next_reference_number(business.id, "RECEIPT")


def test_allocate_skips_taken_numbers(db_session, business):
    day = date(2026, 2, 15)
    taken = {"SALE-20260215-0001", "SALE-20260215-0002"}
    number = allocate_reference_number(business.id, "SALE", taken.__contains__, on_date=day)
    assert number == "SALE-20260215-0003"


def test_allocate_gives_up_after_attempts(db_session, business):
    with pytest.raises(ReferenceCollisionError):
        allocate_reference_number(business.id, "SALE", lambda candidate: True, attempts=3)


def test_prefixes():
    assert document_service.DOCUMENT_PREFIXES["PURCHASE_ORDER"] == "PO"
    assert document_service.DOCUMENT_PREFIXES["PAYMENT"] == "PAY"
