from .users import User, SessionToken
from .catalog import Category, Product
from .orders import Order, OrderItem
from .credit import CreditTransaction
from .menus import WeeklyMenu, MenuReservation

__all__ = [
    'User', 'SessionToken',
    'Category', 'Product',
    'Order', 'OrderItem',
    'CreditTransaction',
    'WeeklyMenu', 'MenuReservation',
]
