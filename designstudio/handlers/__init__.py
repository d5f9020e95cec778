"""HTTP handlers"""
from .base_handler import BaseHandler
from .checkout_handler import CheckoutHandler
from .order_handler import OrderHandler
from .admin_handler import AdminHandler
from .discount_handler import DiscountHandler

__all__ = [
    'BaseHandler',
    'CheckoutHandler',
    'OrderHandler',
    'AdminHandler',
    'DiscountHandler'
]
