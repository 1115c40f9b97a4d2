from .accounts import Account, CreditLine, account_from_payload
from .catalog import Category, Product
from .ledger import LedgerDraft, LedgerEntry
from .menus import Menu, Reservation, ReservationDraft
from .orders import Order, OrderDraft, OrderLine

__all__ = [
    'Account', 'CreditLine', 'account_from_payload',
    'Category', 'Product',
    'LedgerDraft', 'LedgerEntry',
    'Menu', 'Reservation', 'ReservationDraft',
    'Order', 'OrderDraft', 'OrderLine',
]
