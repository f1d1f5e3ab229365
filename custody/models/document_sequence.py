from datetime import datetime

from sqlalchemy import DateTime, Integer, Sequence, String, func
from sqlalchemy.orm import Mapped, mapped_column

from custody.db.base import Base


class DocumentSequence(Base):
    """Counter row per prefix, used on backends without native sequences."""
    __tablename__ = "document_sequences"

    prefix: Mapped[str] = mapped_column(String(8), primary_key=True)  # "T" deliveries, "P" payments
    last_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


# Native sequences never block concurrent writers; a rolled-back record
# leaves a gap in its prefix.
DOCUMENT_NUMBER_SEQUENCES: dict[str, Sequence] = {
    "T": Sequence("delivery_document_number_seq", metadata=Base.metadata),
    "P": Sequence("payment_receipt_number_seq", metadata=Base.metadata),
}
