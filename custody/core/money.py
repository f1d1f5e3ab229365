from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")

QUANTITY_QUANT = Decimal("0.001")
QUANTITY_SCALE = 1000
ZERO_QUANTITY = Decimal("0.000")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_quantity(value: Decimal | int | float | str) -> Decimal:
    # Ledger quantities keep three decimals (kg to the gram).
    return Decimal(str(value)).quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP)


def quantity_to_units(value: Decimal | int | float | str) -> int:
    return int(to_quantity(value) * QUANTITY_SCALE)


def units_to_quantity(units: int) -> Decimal:
    return to_quantity(Decimal(int(units)) / QUANTITY_SCALE)
