from custody.models.customer import Customer
from custody.models.product import Product
from custody.models.stock import CustomerStock
from custody.models.delivery import Delivery
from custody.models.payment import Payment, PaymentLine
from custody.models.document_sequence import DocumentSequence
