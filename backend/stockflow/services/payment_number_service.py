# Overview: Payment number allocation (PAG-YYYY-NNNN).

"""
Payment Number Generator

WHY: Payments carry a human-readable number that staff quote on receipts and
bank reconciliations. Numbers are sequential per tenant with the creation
year stamped in; the sequence does not restart each year.

Malformed or foreign-format numbers (imports, manual fixes) are skipped when
computing the next value. They never block creation of new payments.
"""

from __future__ import annotations

import re
from typing import Iterable

from ..extensions import db
from ..models import Payment
from ..time_utils import utcnow


PAYMENT_NUMBER_PREFIX = "PAG"
SEQUENCE_PAD = 4

# Year is always 4 digits; the sequence is zero-padded to at least 4 digits
PAYMENT_NUMBER_PATTERN = re.compile(rf"^{PAYMENT_NUMBER_PREFIX}-(\d{{4}})-(\d{{{SEQUENCE_PAD},}})$")


def parse_sequence(payment_number) -> int | None:
    """Return the numeric sequence of a well-formed payment number, else None."""
    if not isinstance(payment_number, str):
        return None
    match = PAYMENT_NUMBER_PATTERN.match(payment_number.strip())
    if not match:
        return None
    return int(match.group(2))


def format_payment_number(year: int, sequence: int) -> str:
    return f"{PAYMENT_NUMBER_PREFIX}-{year:04d}-{sequence:0{SEQUENCE_PAD}d}"


def next_payment_number(existing_numbers: Iterable, year: int | None = None) -> str:
    """
    Compute the number following the highest valid sequence in existing_numbers.

    Args:
        existing_numbers: Every payment number already issued (any values;
            non-matching ones are ignored)
        year: Year to stamp (defaults to the current UTC year)

    Returns:
        e.g. "PAG-2024-0008" when the highest valid sequence is 7
    """
    highest = 0
    for number in existing_numbers:
        sequence = parse_sequence(number)
        if sequence is not None and sequence > highest:
            highest = sequence

    if year is None:
        year = utcnow().year
    return format_payment_number(year, highest + 1)


def generate_payment_number(org_id: int) -> str:
    """
    Allocate the next payment number for a tenant.

    Two concurrent allocations can compute the same value; the
    (org_id, payment_number) unique constraint rejects the loser, and
    callers run inside run_with_retry(retry_on=(IntegrityError,)).
    """
    rows = (
        db.session.query(Payment.payment_number)
        .filter(Payment.org_id == org_id)
        .all()
    )
    return next_payment_number(row[0] for row in rows)
