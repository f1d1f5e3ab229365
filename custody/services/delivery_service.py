import json
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from custody.core.errors import (
    IdempotencyConflictError,
    StockError,
    StorageError,
    ValidationError,
    with_unit,
)
from custody.core.id_utils import generate_shortuuid
from custody.core.money import to_money, to_quantity
from custody.models.delivery import Delivery
from custody.services.ledger_service import current_quantity, debit
from custody.services.receipt_service import DELIVERY_PREFIX, issue_document_number
from custody.services.reference_service import get_customer, get_product

logger = logging.getLogger("custody.ledger")


@dataclass(frozen=True)
class DeliveryResult:
    delivery: Delivery
    remaining_stock: Decimal
    replayed: bool = False


def _find_by_idempotency_key(db: Session, idempotency_key: str) -> Delivery | None:
    return db.execute(
        select(Delivery).where(Delivery.idempotency_key == idempotency_key)
    ).scalar_one_or_none()


def _replay(
    db: Session,
    delivery: Delivery,
    *,
    customer_id: str,
    product_id: str,
    quantity: Decimal | int | float | str,
) -> DeliveryResult:
    if (
        delivery.customer_id != customer_id
        or delivery.product_id != product_id
        or delivery.quantity != to_quantity(quantity)
    ):
        raise IdempotencyConflictError(delivery.idempotency_key)

    logger.info(
        json.dumps(
            {
                "event": "delivery.replay",
                "delivery_id": delivery.id,
                "idempotency_key": delivery.idempotency_key,
            }
        )
    )
    return DeliveryResult(
        delivery=delivery,
        remaining_stock=current_quantity(
            db, customer_id=delivery.customer_id, product_id=delivery.product_id
        ),
        replayed=True,
    )


def process_delivery(
    db: Session,
    *,
    customer_id: str,
    product_id: str,
    quantity: Decimal | int | float | str,
    delivery_date: date,
    notes: str | None = None,
    unit: str | None = None,
    idempotency_key: str | None = None,
) -> DeliveryResult:
    """Debit the customer's stock and record the delivery in one transaction.

    Stock failures propagate with ``available``/``requested``/``unit`` and
    leave no delivery behind.
    """
    if idempotency_key:
        existing = _find_by_idempotency_key(db, idempotency_key)
        if existing is not None:
            return _replay(
                db,
                existing,
                customer_id=customer_id,
                product_id=product_id,
                quantity=quantity,
            )

    amount = to_quantity(quantity)
    if amount <= 0:
        raise ValidationError("quantity must be greater than zero", field="quantity")

    get_customer(db, customer_id)
    product = get_product(db, product_id)
    if unit is not None and unit.strip() and unit.strip() != product.unit:
        raise ValidationError(
            f"unit '{unit.strip()}' does not match product unit '{product.unit}'",
            field="unit",
        )

    unit_price = to_money(product.price)
    total_amount = to_money(unit_price * amount)

    try:
        remaining = debit(db, customer_id=customer_id, product_id=product_id, amount=amount)
        delivery = Delivery(
            id=generate_shortuuid(),
            customer_id=customer_id,
            product_id=product_id,
            product_name=product.name,
            unit=product.unit,
            quantity=amount,
            unit_price=unit_price,
            total_amount=total_amount,
            delivery_date=delivery_date,
            notes=notes,
            document_number=issue_document_number(db, DELIVERY_PREFIX),
            idempotency_key=idempotency_key,
        )
        db.add(delivery)
        db.commit()
    except StockError as exc:
        db.rollback()
        raise with_unit(exc, product.unit)
    except IntegrityError:
        db.rollback()
        if idempotency_key:
            existing = _find_by_idempotency_key(db, idempotency_key)
            if existing is not None:
                return _replay(
                    db,
                    existing,
                    customer_id=customer_id,
                    product_id=product_id,
                    quantity=quantity,
                )
        raise StorageError("Delivery could not be stored") from None
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError() from exc

    db.refresh(delivery)
    logger.info(
        json.dumps(
            {
                "event": "delivery.create",
                "delivery_id": delivery.id,
                "document_number": delivery.document_number,
                "customer_id": customer_id,
                "product_id": product_id,
                "quantity": str(amount),
                "total_amount": str(total_amount),
                "remaining_stock": str(remaining),
            }
        )
    )
    return DeliveryResult(delivery=delivery, remaining_stock=remaining)


def list_customer_deliveries(db: Session, *, customer_id: str) -> list[Delivery]:
    get_customer(db, customer_id)
    return list(
        db.execute(
            select(Delivery)
            .where(Delivery.customer_id == customer_id)
            .order_by(Delivery.delivery_date.desc(), Delivery.created_at.desc())
        ).scalars()
    )
