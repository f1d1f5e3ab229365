from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from custody.core.deps import get_db
from custody.main import app


def test_unreachable_store_answers_storage_error(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'missing-dir' / 'ledger.db'}")
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as client:
            delivery = client.post(
                "/api/deliveries",
                json={
                    "customerId": "c1",
                    "productId": "p1",
                    "quantity": 1,
                    "deliveryDate": "2026-05-20",
                },
                headers={"Idempotency-Key": "delivery-unreachable-001"},
            )
            stocks = client.get("/api/customers/c1/stocks")
            payments = client.post(
                "/api/payments",
                json={"customer_id": "c1", "amount": 10, "payment_method": "cash"},
            )
    finally:
        app.dependency_overrides.clear()
        engine.dispose()

    for res in (delivery, stocks, payments):
        assert res.status_code == 503, res.text
        error = res.json()["error"]
        assert error["code"] == "STORAGE_ERROR"
        assert error["request_id"]
