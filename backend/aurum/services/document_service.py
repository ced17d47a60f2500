# Overview: Sequence allocation for barcodes, refinery batch numbers and time-derived vouchers.

from __future__ import annotations

import re

from sqlalchemy import update

from ..models import DocumentSequence
from ..models.enums import MetalType
from ..validation import ValidationError


def next_sequence(session, sequence_key: str) -> int:
    """
    Allocate the next number for `sequence_key` inside the caller's scope.

    The UPDATE takes the row lock, so two scopes allocating from the same
    key serialize; the number only becomes visible when the scope commits
    and is given back if it rolls back. A first allocation that races
    another first allocation fails on the unique key and surfaces as a
    conflict.
    """
    if not sequence_key:
        raise ValidationError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.sequence_key == sequence_key)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    if result.rowcount:
        current = (
            session.query(DocumentSequence.next_number)
            .filter_by(sequence_key=sequence_key)
            .scalar()
        )
        return current - 1

    session.add(DocumentSequence(sequence_key=sequence_key, next_number=2))
    session.flush()
    return 1


def name_initials(item_name: str) -> str:
    """'Ring Necklace' -> 'RN'; single words use their first two letters."""
    words = [w for w in re.split(r"[^A-Za-z0-9]+", item_name or "") if w]
    if not words:
        return "XX"
    if len(words) == 1:
        return words[0][:2].upper().ljust(2, "X")
    return "".join(w[0] for w in words[:3]).upper()


def next_barcode(session, metal_type: MetalType, item_name: str) -> str:
    """Barcode of the form {G|S}-{initials}-{NNNN}, numbered per metal and initials."""
    metal = MetalType(metal_type)
    initials = name_initials(item_name)
    number = next_sequence(session, f"BARCODE:{metal.prefix}:{initials}")
    return f"{metal.prefix}-{initials}-{number:04d}"


def next_batch_number(session, metal_type: MetalType) -> str:
    """Refinery batch number RB-{G|S}-{NNNN}, numbered per metal."""
    metal = MetalType(metal_type)
    number = next_sequence(session, f"REFINERY:{metal.prefix}")
    return f"RB-{metal.prefix}-{number:04d}"
