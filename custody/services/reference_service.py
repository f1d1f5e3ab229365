from sqlalchemy.orm import Session

from custody.core.errors import CustomerNotFoundError, ProductNotFoundError
from custody.models.customer import Customer
from custody.models.product import Product


def get_customer(db: Session, customer_id: str) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise CustomerNotFoundError(customer_id)
    return customer


def get_product(db: Session, product_id: str) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product
