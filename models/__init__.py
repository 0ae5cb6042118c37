"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for relationships to work correctly.
"""

from models.base import Base
from models.category import Category
from models.subcategory import Subcategory
from models.product import Product
from models.cartItem import CartItem
from models.order import Order
from models.orderLine import OrderLine

__all__ = [
    'Base',
    'Category',
    'Subcategory',
    'Product',
    'CartItem',
    'Order',
    'OrderLine',
]
