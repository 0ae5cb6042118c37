"""
Custom exceptions for the storefront domain layer.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
ShopException (base)
├── NotFoundException                        (404)
│   ├── CategoryNotFoundException
│   ├── SubcategoryNotFoundException
│   ├── ProductNotFoundException
│   ├── CartItemNotFoundException
│   └── OrderNotFoundException
├── ValidationException                      (400)
├── OperationNotAllowedException             (409)
├── CatalogException                         (400)
│   ├── DuplicateNameException
│   ├── InactiveParentException
│   └── CategoryMismatchException
├── CartException                            (400)
│   ├── EmptyCartException
│   └── InactiveProductException
└── OrderException                           (400)
    ├── InsufficientStockException
    └── InvalidOrderStateException

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

Callers map them to responses:
    try:
        await order_service.cancel(order_id)
    except ShopException as e:
        status, payload = handle_service_error(e)
"""

from .base import ShopException, NotFoundException, ValidationException, OperationNotAllowedException
from .catalog import (
    CatalogException,
    CategoryNotFoundException,
    SubcategoryNotFoundException,
    ProductNotFoundException,
    DuplicateNameException,
    InactiveParentException,
    CategoryMismatchException
)
from .cart import CartException, EmptyCartException, CartItemNotFoundException, InactiveProductException
from .order import (
    OrderException,
    OrderNotFoundException,
    InsufficientStockException,
    InvalidOrderStateException
)

__all__ = [
    # Base
    'ShopException',
    'NotFoundException',
    'ValidationException',
    'OperationNotAllowedException',

    # Catalog
    'CatalogException',
    'CategoryNotFoundException',
    'SubcategoryNotFoundException',
    'ProductNotFoundException',
    'DuplicateNameException',
    'InactiveParentException',
    'CategoryMismatchException',

    # Cart
    'CartException',
    'EmptyCartException',
    'CartItemNotFoundException',
    'InactiveProductException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'InsufficientStockException',
    'InvalidOrderStateException',
]
