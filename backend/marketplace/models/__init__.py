from .accounts import Profile, SessionToken
from .catalog import Product, Favorite
from .orders import Order, OrderItem
from .settings import AdminSettings

__all__ = [
    'Profile', 'SessionToken',
    'Product', 'Favorite',
    'Order', 'OrderItem',
    'AdminSettings',
]
