from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.orm import Session

from custody.core.api_docs import error_responses
from custody.core.deps import get_db
from custody.models.payment import Payment, PaymentLine
from custody.schemas.payment import PaymentCreate, PaymentCreateOut, PaymentLineOut, PaymentOut
from custody.services.stock_entry_service import (
    StockEntryLine,
    list_customer_payments,
    process_stock_entry,
)

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _payment_out(
    payment: Payment,
    lines: list[PaymentLine],
    balances: dict | None = None,
) -> PaymentOut:
    balances = balances or {}
    return PaymentOut(
        id=payment.id,
        customer_id=payment.customer_id,
        amount=float(payment.amount),
        payment_method=payment.payment_method,
        notes=payment.notes,
        receipt_number=payment.receipt_number,
        created_at=payment.created_at,
        products=[
            PaymentLineOut(
                id=line.product_id,
                quantity=float(line.quantity),
                balance=float(balances[line.product_id]) if line.product_id in balances else None,
            )
            for line in lines
        ],
    )


@router.post(
    "",
    response_model=PaymentCreateOut,
    status_code=status.HTTP_201_CREATED,
    summary="Record a payment / stock entry",
    description=(
        "Records a payment. When `products` is present every line is credited to the "
        "customer's held stock; the entry is all-or-nothing, so one invalid line rejects "
        "the whole request and no balance changes. A repeated `Idempotency-Key` returns "
        "the original payment with status 200; reusing it for a different request is a 409."
    ),
    responses=error_responses(404, 409, 422, 500, 503),
)
def create_payment(
    payload: PaymentCreate,
    response: Response,
    db: Session = Depends(get_db),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=80),
):
    result = process_stock_entry(
        db,
        customer_id=payload.customer_id,
        amount=payload.amount,
        payment_method=payload.payment_method,
        notes=payload.notes,
        lines=[StockEntryLine(product_id=item.id, quantity=item.quantity) for item in payload.products],
        idempotency_key=idempotency_key,
    )
    if result.replayed:
        response.status_code = status.HTTP_200_OK
    return PaymentCreateOut(
        payment=_payment_out(result.payment, result.lines, result.balances),
        message="Payment already recorded" if result.replayed else "Payment recorded",
    )


@router.get(
    "/customer/{customer_id}",
    response_model=list[PaymentOut],
    summary="List a customer's payments and stock entries",
    responses=error_responses(404, 422, 500, 503),
)
def get_customer_payments(customer_id: str, db: Session = Depends(get_db)):
    return [
        _payment_out(payment, lines)
        for payment, lines in list_customer_payments(db, customer_id=customer_id)
    ]
