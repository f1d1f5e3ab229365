import pytest
import os
from decimal import Decimal

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import custody.models  # noqa: F401
from custody.core.deps import get_db
from custody.core.id_utils import generate_shortuuid
from custody.db.base import Base
from custody.main import app
from custody.models.customer import Customer
from custody.models.product import Product


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def test_context():
    engine = _memory_engine()
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session():
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def make_customer():
    def _make(db: Session, name: str = "Ayse Yilmaz") -> str:
        customer = Customer(id=generate_shortuuid(), name=name, phone="+90 555 000 0000")
        db.add(customer)
        db.commit()
        return customer.id

    return _make


@pytest.fixture()
def make_product():
    def _make(
        db: Session,
        name: str = "Wheat Seed",
        unit: str = "kg",
        price: str = "12.50",
    ) -> str:
        product = Product(id=generate_shortuuid(), name=name, unit=unit, price=Decimal(price))
        db.add(product)
        db.commit()
        return product.id

    return _make
