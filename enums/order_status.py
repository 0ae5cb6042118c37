from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"        # Created at checkout, stock already decremented
    PAID = "paid"              # Payment confirmed (stamps paid_at)
    SHIPPED = "shipped"        # Handed to carrier (stamps shipped_at)
    DELIVERED = "delivered"    # Final
    CANCELLED = "cancelled"    # Final, stock restored

    @classmethod
    def from_string(cls, value: str) -> 'OrderStatus':
        """
        Convert string to OrderStatus, case-insensitive.

        Raises:
            ValueError: If value is not a valid status
        """
        if isinstance(value, OrderStatus):
            return value
        normalized = str(value).strip().lower()
        for status in cls:
            if status.value == normalized:
                return status
        valid = ", ".join(s.value for s in cls)
        raise ValueError(f"Invalid order status '{value}'. Valid values: {valid}")
