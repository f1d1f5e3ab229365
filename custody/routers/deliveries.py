from fastapi import APIRouter, Depends, Header, Response, status
from sqlalchemy.orm import Session

from custody.core.api_docs import error_responses
from custody.core.deps import get_db
from custody.models.delivery import Delivery
from custody.schemas.delivery import DeliveryCreate, DeliveryCreateOut, DeliveryOut
from custody.services.delivery_service import list_customer_deliveries, process_delivery

router = APIRouter(prefix="/api/deliveries", tags=["deliveries"])


def _delivery_out(delivery: Delivery) -> DeliveryOut:
    return DeliveryOut(
        id=delivery.id,
        customer_id=delivery.customer_id,
        product_id=delivery.product_id,
        product_name=delivery.product_name,
        unit=delivery.unit,
        quantity=float(delivery.quantity),
        unit_price=float(delivery.unit_price),
        total_amount=float(delivery.total_amount),
        delivery_date=delivery.delivery_date,
        note=delivery.notes,
        document_number=delivery.document_number,
        created_at=delivery.created_at,
    )


@router.post(
    "",
    response_model=DeliveryCreateOut,
    status_code=status.HTTP_201_CREATED,
    summary="Deliver goods out of custody",
    description=(
        "Debits the customer's held stock and records the delivery in one transaction. "
        "Send an `Idempotency-Key` header to make retries safe: a repeated key returns "
        "the original delivery with status 200 instead of debiting twice. Reusing a key "
        "for a different customer, product or quantity is rejected with 409."
    ),
    responses=error_responses(400, 404, 409, 422, 500, 503),
)
def create_delivery(
    payload: DeliveryCreate,
    response: Response,
    db: Session = Depends(get_db),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=80),
):
    result = process_delivery(
        db,
        customer_id=payload.customer_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
        delivery_date=payload.delivery_date,
        notes=payload.note,
        unit=payload.unit,
        idempotency_key=idempotency_key,
    )
    if result.replayed:
        response.status_code = status.HTTP_200_OK
    return DeliveryCreateOut(
        delivery=_delivery_out(result.delivery),
        remaining_stock=float(result.remaining_stock),
        message="Delivery already recorded" if result.replayed else "Delivery recorded",
    )


@router.get(
    "/customer/{customer_id}",
    response_model=list[DeliveryOut],
    summary="List a customer's deliveries",
    responses=error_responses(404, 422, 500, 503),
)
def get_customer_deliveries(customer_id: str, db: Session = Depends(get_db)):
    return [_delivery_out(row) for row in list_customer_deliveries(db, customer_id=customer_id)]
