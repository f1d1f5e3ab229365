from datetime import datetime

from custody.schemas.delivery import CamelModel


class StockBalanceOut(CamelModel):
    product_id: str
    product_name: str
    unit: str
    quantity: float
    last_updated: datetime | None = None


class StockLevelOut(CamelModel):
    customer_id: str
    product_id: str
    quantity: float
    last_updated: datetime | None = None
