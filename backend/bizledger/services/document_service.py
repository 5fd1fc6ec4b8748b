# Overview: Service-layer operations for reference numbers; per-business document sequences.

from __future__ import annotations

from datetime import date
from typing import Callable

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence
from ..time_utils import today
from ..validation import ReferenceCollisionError


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


DOCUMENT_PREFIXES = {
    "SALE": "SALE",
    "INVOICE": "INV",
    "PURCHASE_ORDER": "PO",
    "BOOKING": "BK",
    "PAYMENT": "PAY",
}


def format_reference_number(prefix: str, on_date: date, counter: int, pad: int = 4) -> str:
    """PREFIX-YYYYMMDD-NNNN, e.g. SALE-20260215-0007."""
    return f"{prefix}-{on_date:%Y%m%d}-{counter:0{pad}d}"


def _allocate_counter(business_id: int, document_type: str) -> int:
    """
    Atomically take the next counter value for a business/type.

    Uses an UPDATE ... SET next_number = next_number + 1 so concurrent
    writers serialize on the sequence row.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.business_id == business_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _current() -> int:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(business_id=business_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current()

    # First number for this business/type. A concurrent first allocation
    # surfaces as IntegrityError on flush and the caller retries.
    db.session.add(DocumentSequence(business_id=business_id, document_type=document_type, next_number=2))
    db.session.flush()
    return 1


def next_reference_number(business_id: int, document_type: str = "SALE", on_date: date | None = None) -> str:
    """
    Allocate the next reference number for a business/document type.

    The counter never resets, so numbers stay unique even though the date
    part changes daily. Does not commit; the caller's transaction owns the
    sequence update.
    """
    if not business_id:
        raise DocumentSequenceError("business_id is required")
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    counter = _allocate_counter(business_id, document_type)
    return format_reference_number(prefix, on_date or today(), counter)


def allocate_reference_number(
    business_id: int,
    document_type: str,
    exists: Callable[[str], bool],
    *,
    attempts: int | None = None,
    on_date: date | None = None,
) -> str:
    """
    Draw candidates until one is not already taken.

    ``exists`` reports whether a candidate is already used for this
    business (the uniqueness check of the owning table).

    Raises:
        ReferenceCollisionError: every candidate collided
    """
    if attempts is None:
        attempts = current_app.config.get("REFERENCE_NUMBER_ATTEMPTS", 5)

    for _ in range(attempts):
        candidate = next_reference_number(business_id, document_type, on_date=on_date)
        if not exists(candidate):
            return candidate
        current_app.logger.warning(
            "Reference number %s already used for business %s, drawing another", candidate, business_id
        )

    raise ReferenceCollisionError(
        f"Could not allocate a unique {document_type} number for business {business_id} "
        f"after {attempts} attempts"
    )
