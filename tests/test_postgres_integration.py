import os
import threading
from decimal import Decimal
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, delete, func, inspect, select, text
from sqlalchemy.orm import sessionmaker

from custody.core.errors import InsufficientStockError
from custody.core.id_utils import generate_shortuuid
from custody.models.customer import Customer
from custody.models.delivery import Delivery
from custody.models.payment import Payment, PaymentLine
from custody.models.product import Product
from custody.models.stock import CustomerStock
from custody.services.ledger_service import credit, debit, peek_balance
from custody.services.receipt_service import DELIVERY_PREFIX, issue_document_number
from custody.services.stock_entry_service import StockEntryLine, process_stock_entry


def _test_pg_url() -> str | None:
    return os.getenv("TEST_POSTGRES_DATABASE_URL")


def _alembic_config() -> Config:
    project_root = Path(__file__).resolve().parents[1]
    return Config(str(project_root / "alembic.ini"))


def _run_concurrently(workers: int, target) -> list[Exception]:
    barrier = threading.Barrier(workers)
    errors: list[Exception] = []
    lock = threading.Lock()

    def run(index: int):
        try:
            barrier.wait()
            target(index)
        except Exception as exc:
            with lock:
                errors.append(exc)

    threads = [threading.Thread(target=run, args=(index,)) for index in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return errors


@pytest.fixture()
def pg_session_local():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")

    engine = create_engine(url, pool_pre_ping=True, pool_size=10)
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    customer_ids: list[str] = []
    product_ids: list[str] = []

    def seed(*, products: int = 1) -> tuple[str, list[str]]:
        customer_id = generate_shortuuid()
        new_product_ids = [generate_shortuuid() for _ in range(products)]
        db = session_local()
        try:
            db.add(Customer(id=customer_id, name="Race Customer"))
            for index, product_id in enumerate(new_product_ids):
                db.add(Product(id=product_id, name=f"Race Product {index}", unit="kg", price=Decimal("1.00")))
            db.commit()
        finally:
            db.close()
        customer_ids.append(customer_id)
        product_ids.extend(new_product_ids)
        return customer_id, new_product_ids

    try:
        yield session_local, seed
    finally:
        db = session_local()
        try:
            payment_ids = select(Payment.id).where(Payment.customer_id.in_(customer_ids))
            db.execute(delete(PaymentLine).where(PaymentLine.payment_id.in_(payment_ids)))
            db.execute(delete(Payment).where(Payment.customer_id.in_(customer_ids)))
            db.execute(delete(Delivery).where(Delivery.customer_id.in_(customer_ids)))
            db.execute(delete(CustomerStock).where(CustomerStock.customer_id.in_(customer_ids)))
            db.execute(delete(Customer).where(Customer.id.in_(customer_ids)))
            db.execute(delete(Product).where(Product.id.in_(product_ids)))
            db.commit()
        finally:
            db.close()
            engine.dispose()


@pytest.mark.integration
def test_postgres_connection_and_core_tables():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run Postgres integration tests.")

    engine = create_engine(url, pool_pre_ping=True)
    with engine.connect() as conn:
        assert conn.execute(text("SELECT 1")).scalar_one() == 1

    table_names = set(inspect(engine).get_table_names())
    assert "customer_stocks" in table_names
    assert "deliveries" in table_names
    assert "payments" in table_names
    assert "document_sequences" in table_names
    assert "delivery_document_number_seq" in set(inspect(engine).get_sequence_names())


@pytest.mark.integration
def test_alembic_upgrade_downgrade_smoke():
    url = _test_pg_url()
    if not url:
        pytest.skip("Set TEST_POSTGRES_DATABASE_URL to run migration smoke tests.")
    if os.getenv("ALLOW_DESTRUCTIVE_MIGRATION_TESTS") != "1":
        pytest.skip("Set ALLOW_DESTRUCTIVE_MIGRATION_TESTS=1 for downgrade smoke test.")

    alembic_cfg = _alembic_config()

    previous_database_url = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = url
    try:
        command.upgrade(alembic_cfg, "head")
        command.downgrade(alembic_cfg, "base")
        command.upgrade(alembic_cfg, "head")
    finally:
        if previous_database_url is None:
            os.environ.pop("DATABASE_URL", None)
        else:
            os.environ["DATABASE_URL"] = previous_database_url


@pytest.mark.integration
def test_concurrent_debits_on_postgres_never_oversell(pg_session_local):
    session_local, seed = pg_session_local
    customer_id, (product_id,) = seed()

    db = session_local()
    try:
        credit(db, customer_id=customer_id, product_id=product_id, amount=10)
        db.commit()
    finally:
        db.close()

    successes: list[Decimal] = []
    lock = threading.Lock()

    def worker(_index: int):
        session = session_local()
        try:
            try:
                balance = debit(session, customer_id=customer_id, product_id=product_id, amount=3)
                session.commit()
            except InsufficientStockError:
                session.rollback()
                return
            with lock:
                successes.append(balance)
        finally:
            session.close()

    assert _run_concurrently(8, worker) == []

    db = session_local()
    try:
        assert len(successes) == 3
        assert peek_balance(db, customer_id=customer_id, product_id=product_id).quantity == Decimal("1.000")
    finally:
        db.close()


@pytest.mark.integration
def test_racing_first_credits_create_a_single_row(pg_session_local):
    session_local, seed = pg_session_local

    for _ in range(5):
        customer_id, (product_id,) = seed()

        def worker(index: int):
            session = session_local()
            try:
                credit(session, customer_id=customer_id, product_id=product_id, amount=index + 1)
                session.commit()
            finally:
                session.close()

        assert _run_concurrently(2, worker) == []

        db = session_local()
        try:
            rows = db.execute(
                select(func.count(CustomerStock.id)).where(
                    CustomerStock.customer_id == customer_id,
                    CustomerStock.product_id == product_id,
                )
            ).scalar_one()
            assert rows == 1
            assert peek_balance(db, customer_id=customer_id, product_id=product_id).quantity == Decimal("3.000")
        finally:
            db.close()


@pytest.mark.integration
def test_stock_entries_with_opposite_line_order_do_not_deadlock(pg_session_local):
    session_local, seed = pg_session_local
    customer_id, (first_id, second_id) = seed(products=2)
    orders = [(first_id, second_id), (second_id, first_id)]
    rounds = 10

    def worker(index: int):
        for _ in range(rounds):
            session = session_local()
            try:
                process_stock_entry(
                    session,
                    customer_id=customer_id,
                    amount=0,
                    payment_method="cash",
                    lines=[StockEntryLine(product_id=product_id, quantity=1) for product_id in orders[index]],
                )
            finally:
                session.close()

    assert _run_concurrently(2, worker) == []

    db = session_local()
    try:
        for product_id in (first_id, second_id):
            assert peek_balance(db, customer_id=customer_id, product_id=product_id).quantity == Decimal(2 * rounds)
    finally:
        db.close()


@pytest.mark.integration
def test_document_numbers_do_not_wait_on_open_transactions(pg_session_local):
    session_local, _ = pg_session_local

    holder = session_local()
    other = session_local()
    try:
        held = issue_document_number(holder, DELIVERY_PREFIX)
        other.execute(text("SET LOCAL lock_timeout = '2s'"))
        issued = issue_document_number(other, DELIVERY_PREFIX)
        other.commit()
        holder.rollback()
    finally:
        holder.close()
        other.close()

    assert held.startswith("T-")
    assert int(issued.split("-")[1]) > int(held.split("-")[1])
