from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from custody.core.api_docs import error_responses
from custody.core.deps import get_db
from custody.schemas.stock import StockBalanceOut, StockLevelOut
from custody.services.ledger_service import list_customer_balances, require_balance
from custody.services.reference_service import get_customer, get_product

router = APIRouter(prefix="/api/customers", tags=["customers"])


@router.get(
    "/{customer_id}/stocks",
    response_model=list[StockBalanceOut],
    summary="List goods held for a customer",
    responses=error_responses(404, 422, 500, 503),
)
def get_customer_stocks(
    customer_id: str,
    include_empty: bool = Query(default=False, description="Include products whose balance is zero"),
    db: Session = Depends(get_db),
):
    get_customer(db, customer_id)
    return [
        StockBalanceOut(
            product_id=row.product_id,
            product_name=row.product_name,
            unit=row.unit,
            quantity=float(row.quantity),
            last_updated=row.last_updated,
        )
        for row in list_customer_balances(db, customer_id=customer_id, include_empty=include_empty)
    ]


@router.get(
    "/{customer_id}/stocks/{product_id}",
    response_model=StockLevelOut,
    summary="Get the balance of one product held for a customer",
    description="Use this to confirm the outcome of a request that timed out before retrying it.",
    responses=error_responses(404, 422, 500, 503),
)
def get_customer_stock(customer_id: str, product_id: str, db: Session = Depends(get_db)):
    get_customer(db, customer_id)
    get_product(db, product_id)
    view = require_balance(db, customer_id=customer_id, product_id=product_id)
    return StockLevelOut(
        customer_id=customer_id,
        product_id=product_id,
        quantity=float(view.quantity),
        last_updated=view.last_updated,
    )
