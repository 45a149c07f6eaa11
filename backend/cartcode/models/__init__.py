from .tenancy import Store
from .auth import User, SessionToken, StaffMember
from .catalog import Product
from .cart import Cart, CartItem
from .codes import JoinCode, TransferCode
from .orders import Order, OrderItem

__all__ = [
    'Store',
    'User', 'SessionToken', 'StaffMember',
    'Product',
    'Cart', 'CartItem',
    'JoinCode', 'TransferCode',
    'Order', 'OrderItem',
]
