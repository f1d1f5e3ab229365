from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from custody.core.config import settings
from custody.models.document_sequence import DOCUMENT_NUMBER_SEQUENCES, DocumentSequence

DELIVERY_PREFIX = "T"
PAYMENT_PREFIX = "P"


def _bump(db: Session, prefix: str) -> int:
    result = db.execute(
        update(DocumentSequence)
        .where(DocumentSequence.prefix == prefix)
        .values(last_number=DocumentSequence.last_number + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def _next_counter_value(db: Session, prefix: str) -> int:
    if _bump(db, prefix) == 0:
        try:
            with db.begin_nested():
                db.add(DocumentSequence(prefix=prefix, last_number=1))
                db.flush()
        except IntegrityError:
            if _bump(db, prefix) == 0:
                raise

    return db.execute(
        select(DocumentSequence.last_number).where(DocumentSequence.prefix == prefix)
    ).scalar_one()


def format_document_number(prefix: str, number: int) -> str:
    return f"{prefix}-{number:0{settings.receipt_number_width}d}"


def issue_document_number(db: Session, prefix: str) -> str:
    """Reserve the next number for ``prefix``.

    Where the database has native sequences (Postgres) the number comes
    from ``nextval``, which never waits on other transactions, so records
    for different customers and products do not queue behind one counter.
    A rolled-back record leaves a gap there. SQLite already serialises
    every writer on its database lock, so it keeps a counter row bumped in
    the caller's transaction and stays gapless.
    """
    sequence = DOCUMENT_NUMBER_SEQUENCES.get(prefix)
    if sequence is not None and db.get_bind().dialect.supports_sequences:
        number = db.execute(select(sequence.next_value())).scalar_one()
    else:
        number = _next_counter_value(db, prefix)
    return format_document_number(prefix, number)
