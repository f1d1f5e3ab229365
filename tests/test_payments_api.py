from decimal import Decimal

from sqlalchemy import func, select

from custody.models.payment import Payment, PaymentLine
from custody.services.ledger_service import peek_balance


def _seed(session_local, make_customer, make_product):
    db = session_local()
    try:
        customer_id = make_customer(db)
        seed_id = make_product(db, name="Wheat Seed", unit="kg", price="12.50")
        coal_id = make_product(db, name="Coal", unit="sack", price="300")
    finally:
        db.close()
    return customer_id, seed_id, coal_id


def _payment_payload(customer_id: str, products: list[dict] | None = None, **extra) -> dict:
    payload = {
        "customer_id": customer_id,
        "amount": 1500,
        "payment_method": "Cash",
        "notes": "Spring deposit",
    }
    if products is not None:
        payload["products"] = products
    payload.update(extra)
    return payload


def _balance(session_local, customer_id: str, product_id: str):
    db = session_local()
    try:
        view = peek_balance(db, customer_id=customer_id, product_id=product_id)
        return view.quantity if view.is_present else None
    finally:
        db.close()


def _counts(session_local) -> tuple[int, int]:
    db = session_local()
    try:
        payments = int(db.execute(select(func.count(Payment.id))).scalar_one())
        lines = int(db.execute(select(func.count(PaymentLine.id))).scalar_one())
    finally:
        db.close()
    return payments, lines


def test_stock_entry_credits_every_line(test_context, make_customer, make_product):
    client, session_local = test_context
    customer_id, seed_id, coal_id = _seed(session_local, make_customer, make_product)

    res = client.post(
        "/api/payments",
        json=_payment_payload(
            customer_id,
            [{"id": seed_id, "quantity": 100}, {"id": coal_id, "quantity": 4}],
        ),
    )
    assert res.status_code == 201, res.text
    payment = res.json()["payment"]
    assert payment["customer_id"] == customer_id
    assert payment["amount"] == 1500.0
    assert payment["payment_method"] == "cash"
    assert payment["receipt_number"] == "P-0000001"
    assert payment["products"] == [
        {"id": seed_id, "quantity": 100.0, "balance": 100.0},
        {"id": coal_id, "quantity": 4.0, "balance": 4.0},
    ]

    again = client.post(
        "/api/payments",
        json=_payment_payload(customer_id, [{"id": seed_id, "quantity": 25.5}], amount=400),
    )
    assert again.status_code == 201, again.text
    assert again.json()["payment"]["receipt_number"] == "P-0000002"
    assert again.json()["payment"]["products"][0]["balance"] == 125.5

    assert _balance(session_local, customer_id, seed_id) == Decimal("125.500")
    assert _balance(session_local, customer_id, coal_id) == Decimal("4.000")


def test_stock_entry_with_unknown_product_applies_no_line(test_context, make_customer, make_product):
    client, session_local = test_context
    customer_id, seed_id, _ = _seed(session_local, make_customer, make_product)

    res = client.post(
        "/api/payments",
        json=_payment_payload(
            customer_id,
            [{"id": seed_id, "quantity": 10}, {"id": "missing", "quantity": 1}],
        ),
    )
    assert res.status_code == 404, res.text
    assert res.json()["error"]["code"] == "PRODUCT_NOT_FOUND"

    assert _balance(session_local, customer_id, seed_id) is None
    assert _counts(session_local) == (0, 0)


def test_stock_entry_with_non_positive_line_is_rejected_whole(test_context, make_customer, make_product):
    client, session_local = test_context
    customer_id, seed_id, coal_id = _seed(session_local, make_customer, make_product)

    res = client.post(
        "/api/payments",
        json=_payment_payload(
            customer_id,
            [{"id": seed_id, "quantity": 10}, {"id": coal_id, "quantity": 0}],
        ),
    )
    assert res.status_code == 422, res.text
    fields = [item["field"] for item in res.json()["error"]["details"]]
    assert "products.1.quantity" in fields

    assert _balance(session_local, customer_id, seed_id) is None
    assert _counts(session_local) == (0, 0)


def test_payment_without_products_has_no_ledger_effect(test_context, make_customer, make_product):
    client, session_local = test_context
    customer_id, seed_id, _ = _seed(session_local, make_customer, make_product)

    res = client.post("/api/payments", json=_payment_payload(customer_id, amount=250))
    assert res.status_code == 201, res.text
    assert res.json()["payment"]["products"] == []

    assert _balance(session_local, customer_id, seed_id) is None
    assert _counts(session_local) == (1, 0)


def test_payment_for_unknown_customer_is_404(test_context):
    client, session_local = test_context

    res = client.post("/api/payments", json=_payment_payload("missing"))
    assert res.status_code == 404, res.text
    assert res.json()["error"]["code"] == "CUSTOMER_NOT_FOUND"
    assert _counts(session_local) == (0, 0)


def test_payment_idempotency_key_replays(test_context, make_customer, make_product):
    client, session_local = test_context
    customer_id, seed_id, _ = _seed(session_local, make_customer, make_product)
    headers = {"Idempotency-Key": "deposit-0001"}
    payload = _payment_payload(customer_id, [{"id": seed_id, "quantity": 10}])

    first = client.post("/api/payments", json=payload, headers=headers)
    assert first.status_code == 201, first.text
    retry = client.post("/api/payments", json=payload, headers=headers)
    assert retry.status_code == 200, retry.text
    assert retry.json()["payment"]["id"] == first.json()["payment"]["id"]
    assert retry.json()["payment"]["products"] == [{"id": seed_id, "quantity": 10.0, "balance": None}]

    assert _balance(session_local, customer_id, seed_id) == Decimal("10.000")
    assert _counts(session_local) == (1, 1)


def test_list_customer_payments_includes_lines(test_context, make_customer, make_product):
    client, session_local = test_context
    customer_id, seed_id, coal_id = _seed(session_local, make_customer, make_product)

    client.post("/api/payments", json=_payment_payload(customer_id, [{"id": seed_id, "quantity": 5}]))
    client.post(
        "/api/payments",
        json=_payment_payload(customer_id, [{"id": coal_id, "quantity": 1}, {"id": seed_id, "quantity": 2}]),
    )

    res = client.get(f"/api/payments/customer/{customer_id}")
    assert res.status_code == 200, res.text
    rows = res.json()
    assert [row["receipt_number"] for row in rows] == ["P-0000002", "P-0000001"]
    assert [line["id"] for line in rows[0]["products"]] == [coal_id, seed_id]

    assert client.get("/api/payments/customer/missing").status_code == 404
