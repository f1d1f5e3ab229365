"""
Stock ledger engine: the only code allowed to mutate ``customer_stocks``.

Every mutation is a single conditional UPDATE so the database serialises
concurrent writers on the same (customer, product) row. Nothing here
holds in-process locks, and nothing here commits: callers own the
transaction so a ledger mutation and the record documenting it land
together or not at all.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from custody.core.errors import (
    InsufficientStockError,
    NoStockError,
    StockNotFoundError,
    ValidationError,
)
from custody.core.id_utils import generate_shortuuid
from custody.core.money import ZERO_QUANTITY, to_quantity
from custody.models.product import Product
from custody.models.stock import CustomerStock

logger = logging.getLogger("custody.ledger")


class BalanceState(str, Enum):
    ABSENT = "absent"
    PRESENT = "present"


@dataclass(frozen=True)
class BalanceView:
    customer_id: str
    product_id: str
    state: BalanceState
    quantity: Decimal | None = None
    last_updated: datetime | None = None

    @property
    def is_present(self) -> bool:
        return self.state is BalanceState.PRESENT


@dataclass(frozen=True)
class CustomerBalanceRow:
    product_id: str
    product_name: str
    unit: str
    quantity: Decimal
    last_updated: datetime | None


def _positive_amount(amount: Decimal | int | float | str) -> Decimal:
    value = to_quantity(amount)
    if value <= 0:
        raise ValidationError("amount must be greater than zero", field="quantity", value=str(amount))
    return value


def _key_filter(customer_id: str, product_id: str):
    return (
        CustomerStock.customer_id == customer_id,
        CustomerStock.product_id == product_id,
    )


def _read_quantity(db: Session, customer_id: str, product_id: str) -> Decimal | None:
    quantity = db.execute(
        select(CustomerStock.quantity).where(*_key_filter(customer_id, product_id))
    ).scalar_one_or_none()
    return to_quantity(quantity) if quantity is not None else None


def _increment(db: Session, customer_id: str, product_id: str, amount: Decimal) -> int:
    result = db.execute(
        update(CustomerStock)
        .where(*_key_filter(customer_id, product_id))
        .values(
            quantity=CustomerStock.quantity + amount,
            last_updated=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def credit(
    db: Session,
    *,
    customer_id: str,
    product_id: str,
    amount: Decimal | int | float | str,
) -> Decimal:
    """Add ``amount`` to the balance, creating the row on first deposit.

    Returns the balance after the credit. Not idempotent: two calls are
    two deposits.
    """
    value = _positive_amount(amount)

    if _increment(db, customer_id, product_id, value) == 0:
        try:
            with db.begin_nested():
                db.add(
                    CustomerStock(
                        id=generate_shortuuid(),
                        customer_id=customer_id,
                        product_id=product_id,
                        quantity=value,
                    )
                )
                db.flush()
        except IntegrityError:
            # A concurrent first deposit created the row; add to it instead.
            if _increment(db, customer_id, product_id, value) == 0:
                raise

    balance = _read_quantity(db, customer_id, product_id)
    logger.info(
        json.dumps(
            {
                "event": "stock.credit",
                "customer_id": customer_id,
                "product_id": product_id,
                "amount": str(value),
                "balance": str(balance),
            }
        )
    )
    return balance


def debit(
    db: Session,
    *,
    customer_id: str,
    product_id: str,
    amount: Decimal | int | float | str,
) -> Decimal:
    """Remove ``amount`` from the balance if at least that much is held.

    The check and the write are one statement
    (``... WHERE quantity >= :amount``), so two racing debits on the same
    row can never both pass the check. On failure the row is untouched
    and ``NoStockError`` or ``InsufficientStockError`` is raised.
    """
    value = _positive_amount(amount)

    result = db.execute(
        update(CustomerStock)
        .where(
            *_key_filter(customer_id, product_id),
            CustomerStock.quantity >= value,
        )
        .values(
            quantity=CustomerStock.quantity - value,
            last_updated=func.now(),
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        available = _read_quantity(db, customer_id, product_id)
        logger.info(
            json.dumps(
                {
                    "event": "stock.debit_rejected",
                    "customer_id": customer_id,
                    "product_id": product_id,
                    "requested": str(value),
                    "available": str(available) if available is not None else None,
                }
            )
        )
        if available is None:
            raise NoStockError(customer_id=customer_id, product_id=product_id, requested=value)
        raise InsufficientStockError(
            customer_id=customer_id,
            product_id=product_id,
            available=available,
            requested=value,
        )

    balance = _read_quantity(db, customer_id, product_id)
    logger.info(
        json.dumps(
            {
                "event": "stock.debit",
                "customer_id": customer_id,
                "product_id": product_id,
                "amount": str(value),
                "balance": str(balance),
            }
        )
    )
    return balance


def peek_balance(db: Session, *, customer_id: str, product_id: str) -> BalanceView:
    row = db.execute(
        select(CustomerStock.quantity, CustomerStock.last_updated).where(
            *_key_filter(customer_id, product_id)
        )
    ).one_or_none()
    if row is None:
        return BalanceView(customer_id=customer_id, product_id=product_id, state=BalanceState.ABSENT)
    quantity, last_updated = row
    return BalanceView(
        customer_id=customer_id,
        product_id=product_id,
        state=BalanceState.PRESENT,
        quantity=to_quantity(quantity),
        last_updated=last_updated,
    )


def require_balance(db: Session, *, customer_id: str, product_id: str) -> BalanceView:
    view = peek_balance(db, customer_id=customer_id, product_id=product_id)
    if not view.is_present:
        raise StockNotFoundError(customer_id=customer_id, product_id=product_id)
    return view


def current_quantity(db: Session, *, customer_id: str, product_id: str) -> Decimal:
    view = peek_balance(db, customer_id=customer_id, product_id=product_id)
    return view.quantity if view.is_present else ZERO_QUANTITY


def list_customer_balances(
    db: Session,
    *,
    customer_id: str,
    include_empty: bool = False,
) -> list[CustomerBalanceRow]:
    stmt = (
        select(
            CustomerStock.product_id,
            Product.name,
            Product.unit,
            CustomerStock.quantity,
            CustomerStock.last_updated,
        )
        .join(Product, Product.id == CustomerStock.product_id)
        .where(CustomerStock.customer_id == customer_id)
    )
    if not include_empty:
        stmt = stmt.where(CustomerStock.quantity > 0)
    rows = db.execute(stmt.order_by(Product.name.asc())).all()
    return [
        CustomerBalanceRow(
            product_id=product_id,
            product_name=name,
            unit=unit,
            quantity=to_quantity(quantity),
            last_updated=last_updated,
        )
        for product_id, name, unit, quantity, last_updated in rows
    ]
