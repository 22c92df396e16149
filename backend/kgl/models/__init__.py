from .tenancy import Branch, DocumentSequence
from .auth import User, SessionToken
from .inventory import Produce, Supplier
from .procurement import ProcurementOrder, ProcurementOrderLine
from .sales import Sale, CreditSale, CreditSalePayment

__all__ = [
    'Branch', 'DocumentSequence',
    'User', 'SessionToken',
    'Produce', 'Supplier',
    'ProcurementOrder', 'ProcurementOrderLine',
    'Sale', 'CreditSale', 'CreditSalePayment',
]
