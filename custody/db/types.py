from decimal import Decimal

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

from custody.core.money import quantity_to_units, units_to_quantity


class Quantity(TypeDecorator):
    """
    Three-decimal quantity stored as an integer count of thousandths.

    Arithmetic and comparisons in SQL (``quantity - :a``,
    ``quantity >= :a``) stay exact on every backend, including SQLite
    where ``Numeric`` is kept as a binary float. Plain Python values
    compared against a ``Quantity`` column are converted too, so callers
    always pass and receive ``Decimal`` quantities.
    """

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return quantity_to_units(value)

    def process_result_value(self, value, dialect) -> Decimal | None:
        if value is None:
            return None
        return units_to_quantity(value)
