import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from custody.core.errors import IdempotencyConflictError, StorageError, ValidationError
from custody.core.id_utils import generate_shortuuid
from custody.core.money import to_money, to_quantity
from custody.models.payment import Payment, PaymentLine
from custody.services.ledger_service import credit
from custody.services.receipt_service import PAYMENT_PREFIX, issue_document_number
from custody.services.reference_service import get_customer, get_product

logger = logging.getLogger("custody.ledger")


@dataclass(frozen=True)
class StockEntryLine:
    product_id: str
    quantity: Decimal | int | float | str


@dataclass(frozen=True)
class StockEntryResult:
    payment: Payment
    lines: list[PaymentLine]
    balances: dict[str, Decimal] = field(default_factory=dict)
    replayed: bool = False


def _lines_for(db: Session, payment_ids: list[str]) -> dict[str, list[PaymentLine]]:
    if not payment_ids:
        return {}
    rows = db.execute(
        select(PaymentLine)
        .where(PaymentLine.payment_id.in_(payment_ids))
        .order_by(PaymentLine.payment_id, PaymentLine.line_no)
    ).scalars()
    out: dict[str, list[PaymentLine]] = {payment_id: [] for payment_id in payment_ids}
    for line in rows:
        out[line.payment_id].append(line)
    return out


def _find_by_idempotency_key(db: Session, idempotency_key: str) -> Payment | None:
    return db.execute(
        select(Payment).where(Payment.idempotency_key == idempotency_key)
    ).scalar_one_or_none()


def _replay(
    db: Session,
    payment: Payment,
    *,
    customer_id: str,
    amount: Decimal | int | float | str,
    lines: list[StockEntryLine],
) -> StockEntryResult:
    stored_lines = _lines_for(db, [payment.id])[payment.id]
    requested = [(line.product_id, to_quantity(line.quantity)) for line in lines]
    if (
        payment.customer_id != customer_id
        or to_money(payment.amount) != to_money(amount)
        or [(line.product_id, line.quantity) for line in stored_lines] != requested
    ):
        raise IdempotencyConflictError(payment.idempotency_key)

    logger.info(
        json.dumps(
            {
                "event": "stock_entry.replay",
                "payment_id": payment.id,
                "idempotency_key": payment.idempotency_key,
            }
        )
    )
    return StockEntryResult(payment=payment, lines=stored_lines, replayed=True)


def _validated_lines(db: Session, lines: list[StockEntryLine]) -> list[tuple[str, Decimal]]:
    validated: list[tuple[str, Decimal]] = []
    for index, line in enumerate(lines):
        quantity = to_quantity(line.quantity)
        if quantity <= 0:
            raise ValidationError(
                f"products[{index}].quantity must be greater than zero",
                field=f"products.{index}.quantity",
                line=index,
            )
        get_product(db, line.product_id)
        validated.append((line.product_id, quantity))
    return validated


def process_stock_entry(
    db: Session,
    *,
    customer_id: str,
    amount: Decimal | int | float | str,
    payment_method: str,
    notes: str | None = None,
    lines: list[StockEntryLine] | tuple[StockEntryLine, ...] = (),
    idempotency_key: str | None = None,
) -> StockEntryResult:
    """Record a payment and credit every product line it carries.

    All-or-nothing: every line is validated before any credit is applied,
    and all credits commit with the payment record or none do.
    """
    lines = list(lines)
    if idempotency_key:
        existing = _find_by_idempotency_key(db, idempotency_key)
        if existing is not None:
            return _replay(db, existing, customer_id=customer_id, amount=amount, lines=lines)

    money = to_money(amount)
    if money < 0:
        raise ValidationError("amount cannot be negative", field="amount")

    get_customer(db, customer_id)
    validated = _validated_lines(db, lines)

    payment_id = generate_shortuuid()
    balances: dict[str, Decimal] = {}
    try:
        payment_lines = [
            PaymentLine(
                id=generate_shortuuid(),
                payment_id=payment_id,
                product_id=product_id,
                line_no=line_no,
                quantity=quantity,
            )
            for line_no, (product_id, quantity) in enumerate(validated, start=1)
        ]
        # Rows are locked in product order so concurrent entries cannot deadlock.
        for product_id, quantity in sorted(validated, key=lambda item: item[0]):
            balances[product_id] = credit(
                db,
                customer_id=customer_id,
                product_id=product_id,
                amount=quantity,
            )
        payment = Payment(
            id=payment_id,
            customer_id=customer_id,
            amount=money,
            payment_method=payment_method,
            notes=notes,
            receipt_number=issue_document_number(db, PAYMENT_PREFIX),
            idempotency_key=idempotency_key,
        )
        db.add(payment)
        db.flush()
        db.add_all(payment_lines)
        db.commit()
    except IntegrityError:
        db.rollback()
        if idempotency_key:
            existing = _find_by_idempotency_key(db, idempotency_key)
            if existing is not None:
                return _replay(db, existing, customer_id=customer_id, amount=amount, lines=lines)
        raise StorageError("Stock entry could not be stored") from None
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError() from exc

    db.refresh(payment)
    logger.info(
        json.dumps(
            {
                "event": "stock_entry.create",
                "payment_id": payment.id,
                "receipt_number": payment.receipt_number,
                "customer_id": customer_id,
                "amount": str(money),
                "lines": len(payment_lines),
            }
        )
    )
    return StockEntryResult(payment=payment, lines=payment_lines, balances=balances)


def list_customer_payments(db: Session, *, customer_id: str) -> list[tuple[Payment, list[PaymentLine]]]:
    get_customer(db, customer_id)
    payments = list(
        db.execute(
            select(Payment)
            .where(Payment.customer_id == customer_id)
            .order_by(Payment.created_at.desc(), Payment.receipt_number.desc())
        ).scalars()
    )
    lines = _lines_for(db, [payment.id for payment in payments])
    return [(payment, lines[payment.id]) for payment in payments]
