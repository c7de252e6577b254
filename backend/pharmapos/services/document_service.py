# Overview: Storage-backed document sequences shared by every worker process.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ..validation import ValidationError


def _current(document_type: str, period_key: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period_key=period_key)
        .scalar()
    )


def next_sequence(*, document_type: str, period_key: str) -> int:
    """
    Atomically take the next number for (document_type, period_key).

    The increment is a single UPDATE so concurrent writers serialize on the
    row. The first caller of a period inserts the row inside a SAVEPOINT;
    losing that insert race falls back to the UPDATE without disturbing the
    caller's transaction.

    Runs inside the caller's transaction and does not commit.
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if not period_key:
        raise ValidationError("period_key is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period_key == period_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current(document_type, period_key) - 1

    try:
        with db.session.begin_nested():
            db.session.add(
                DocumentSequence(document_type=document_type, period_key=period_key, next_number=2)
            )
        return 1
    except IntegrityError:
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _current(document_type, period_key) - 1
