# FILE: clinicdesk/services/sequences.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.sequence import SequenceCounter

# counter name -> identifier prefix
SEQUENCE_PREFIXES = {
    "sale": settings.SALE_ID_PREFIX,
    "patient": "PAT",
    "payment": "PAY",
    "drug_order": "DRG",
    "walk_in_service": "WIS",
    "lab_result": "LAB",
}


def ensure_sequences(db: Session) -> None:
    """Create any missing counter rows (value 0). Safe to call on every startup."""
    existing = set(db.execute(select(SequenceCounter.name)).scalars().all())
    for name in SEQUENCE_PREFIXES:
        if name not in existing:
            db.add(SequenceCounter(name=name, value=0))
    db.flush()


def next_sequence(db: Session, name: str) -> int:
    """
    Bump the named counter with a single UPDATE and return the new value.

    The UPDATE takes the row (or, on SQLite, the database) write lock for the
    rest of the caller's transaction, so two callers can never read the same
    value. Numbers are never handed out twice, even if the record using one
    is deleted later.
    """
    stmt = (
        update(SequenceCounter)
        .where(SequenceCounter.name == name)
        .values(value=SequenceCounter.value + 1)
    )
    if db.execute(stmt).rowcount == 0:
        try:
            with db.begin_nested():
                db.add(SequenceCounter(name=name, value=1))
            return 1
        except IntegrityError:
            # someone else created the row first
            db.execute(stmt)

    return int(
        db.execute(select(SequenceCounter.value).where(SequenceCounter.name == name)).scalar_one()
    )


def format_identifier(prefix: str, number: int, width: Optional[int] = None) -> str:
    width = settings.SEQUENCE_WIDTH if width is None else width
    return f"{prefix}{int(number):0{width}d}"


def next_identifier(db: Session, name: str, prefix: Optional[str] = None, width: Optional[int] = None) -> str:
    """e.g. next_identifier(db, "patient") -> 'PAT000042'"""
    prefix = SEQUENCE_PREFIXES[name] if prefix is None else prefix
    return format_identifier(prefix, next_sequence(db, name), width)
