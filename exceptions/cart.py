"""
Cart-related exceptions.
"""

from .base import ShopException, NotFoundException


class CartException(ShopException):
    """Base exception for cart-related errors."""

    http_status = 400


class EmptyCartException(CartException):
    """Raised when trying to checkout with empty cart."""

    kind = "EmptyCart"

    def __init__(self, user_id: int):
        super().__init__(
            f"Cart is empty for user {user_id}",
            details={'user_id': user_id}
        )
        self.user_id = user_id


class CartItemNotFoundException(NotFoundException):
    """Raised when cart item not found."""

    def __init__(self, cart_item_id: int):
        super().__init__("Cart item", cart_item_id)
        self.cart_item_id = cart_item_id


class InactiveProductException(CartException):
    """Raised when trying to put a deactivated product in a cart."""

    kind = "InactiveProduct"

    def __init__(self, product_id: int):
        super().__init__(
            f"Product {product_id} is not active",
            details={'product_id': product_id}
        )
        self.product_id = product_id
