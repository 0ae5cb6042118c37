"""
Order State Machine for validating order status transitions and maintaining consistency.

This module implements a finite state machine to ensure valid order status transitions
and provide audit logging for all status changes.
"""

import logging
from typing import Dict, List, Set

from enums.order_status import OrderStatus

logger = logging.getLogger(__name__)


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus, description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.description = description

    def __repr__(self):
        return f"{self.from_status.value} -> {self.to_status.value}"


class OrderStateMachine:
    """
    Finite state machine for order status transitions with validation and audit logging.

    Valid status transitions:
    - PENDING -> PAID
    - PENDING -> CANCELLED (stock restored)
    - PAID -> SHIPPED
    - PAID -> CANCELLED (stock restored)
    - SHIPPED -> DELIVERED

    Invalid transitions (will be rejected):
    - DELIVERED -> any status (final state)
    - CANCELLED -> any status (final state)
    - any status -> itself
    """

    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        # From PENDING
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.PAID,
            description="Payment received and confirmed"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.CANCELLED,
            description="Unpaid order cancelled"
        ),

        # From PAID
        OrderStatusTransition(
            OrderStatus.PAID,
            OrderStatus.SHIPPED,
            description="Order handed to carrier"
        ),
        OrderStatusTransition(
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
            description="Paid order cancelled before shipment"
        ),

        # From SHIPPED
        OrderStatusTransition(
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            description="Order delivered to customer"
        ),
    ]

    FINAL_STATUSES: Set[OrderStatus] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
    CANCELLABLE_STATUSES: Set[OrderStatus] = {OrderStatus.PENDING, OrderStatus.PAID}

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Set[OrderStatus]] = {}
    _transition_descriptions: Dict[tuple, str] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition maps for performance"""
        if cls._transition_map:
            return  # Already built

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, set()).add(transition.to_status)
            cls._transition_descriptions[(transition.from_status, transition.to_status)] = transition.description

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is valid according to the state machine.

        Args:
            from_status: Current order status
            to_status: Desired new status

        Returns:
            True if transition is valid, False otherwise
        """
        cls._build_transition_map()
        return to_status in cls._transition_map.get(from_status, set())

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        """Get all valid next statuses from the current status, in declaration order."""
        cls._build_transition_map()
        destinations = cls._transition_map.get(from_status, set())
        return [status for status in OrderStatus if status in destinations]

    @classmethod
    def get_transition_description(cls, from_status: OrderStatus, to_status: OrderStatus) -> str:
        cls._build_transition_map()
        return cls._transition_descriptions.get(
            (from_status, to_status),
            f"Transition from {from_status.value} to {to_status.value}"
        )

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        """
        Check if a status is final (no transitions allowed from it).

        Args:
            status: Order status to check

        Returns:
            True if status is final, False otherwise
        """
        return status in cls.FINAL_STATUSES

    @classmethod
    def can_be_cancelled(cls, status: OrderStatus) -> bool:
        return status in cls.CANCELLABLE_STATUSES

    @classmethod
    def validate_and_log_transition(cls, order_id: int, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Validate a status transition and create audit log entry.

        Returns:
            True if transition is valid and logged, False otherwise
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            return False

        transition_desc = cls.get_transition_description(from_status, to_status)
        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value}: {transition_desc}")
        return True
