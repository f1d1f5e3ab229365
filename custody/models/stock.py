from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from custody.db.base import Base
from custody.db.types import Quantity


class CustomerStock(Base):
    """
    One balance row per (customer, product). Mutated only through
    ``custody.services.ledger_service``; a zero quantity is a valid state
    and the row is never deleted.
    """
    __tablename__ = "customer_stocks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    customer_id: Mapped[str] = mapped_column(String(36), ForeignKey("customers.id"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), ForeignKey("products.id"), index=True)

    quantity: Mapped[Decimal] = mapped_column(Quantity, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("customer_id", "product_id", name="uq_customer_stocks_customer_product"),
        CheckConstraint("quantity >= 0", name="ck_customer_stocks_quantity_non_negative"),
    )
