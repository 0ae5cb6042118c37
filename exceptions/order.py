"""
Order and stock related exceptions.
"""

from .base import ShopException, NotFoundException


class OrderException(ShopException):
    """Base exception for order-related errors."""

    http_status = 400


class OrderNotFoundException(NotFoundException):
    """Raised when order is not found in database."""

    def __init__(self, order_id: int):
        super().__init__("Order", order_id)
        self.order_id = order_id


class InsufficientStockException(OrderException):
    """Raised when requested quantity exceeds available stock."""

    kind = "InsufficientStock"

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            details={'product_id': product_id, 'requested': requested, 'available': available}
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidOrderStateException(OrderException):
    """Raised when order is in invalid state for requested operation."""

    kind = "InvalidState"

    def __init__(self, order_id: int, current_state: str, required_state: str):
        super().__init__(
            f"Order {order_id} is in state '{current_state}', required '{required_state}'",
            details={'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.order_id = order_id
        self.current_state = current_state
        self.required_state = required_state
