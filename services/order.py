import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from db import Database
from enums.order_status import OrderStatus
from exceptions import (
    EmptyCartException,
    OrderNotFoundException,
    InvalidOrderStateException,
    OperationNotAllowedException,
    ValidationException,
)
from models.order import OrderDTO, OrderDetailDTO, CheckoutDTO
from models.orderLine import OrderLineDTO, BestSellerDTO
from repositories.cartItem import CartItemRepository
from repositories.order import OrderRepository
from repositories.orderLine import OrderLineRepository
from services.inventory import InventoryService
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager
from utils.validation import validate_dto

logger = logging.getLogger(__name__)


class OrderService:
    """
    Checkout and the order lifecycle.

    Status flow:
        pending -> paid -> shipped -> delivered
        pending | paid -> cancelled (stock restored)

    Orders are never deleted; cancellation is the only way to undo one.
    """

    def __init__(self,
                 database: Database,
                 inventory_service: InventoryService | None = None,
                 order_repository=OrderRepository,
                 order_line_repository=OrderLineRepository,
                 cart_item_repository=CartItemRepository):
        self.database = database
        self.inventory = inventory_service or InventoryService(database)
        self.orders = order_repository
        self.order_lines = order_line_repository
        self.cart_items = cart_item_repository

    @TransactionManager.with_retry()
    async def create_from_cart(self, user_id: int, shipping_address: str, phone: str,
                               notes: str | None = None) -> OrderDetailDTO:
        """
        Turn the user's cart into an order.

        Flow (single transaction):
        1. Load cart rows
        2. Take stock for every row through the inventory ledger
        3. Create the order and one line per row at the cart's snapshot price
        4. Empty the cart

        Any failure (empty cart, insufficient stock) leaves orders, stock and
        cart untouched.

        Raises:
            ValidationException: empty shipping address or phone
            EmptyCartException: nothing to check out
            InsufficientStockException: a row asks for more than is in stock
        """
        checkout = validate_dto(CheckoutDTO, shipping_address=shipping_address, phone=phone, notes=notes)

        async with TransactionManager.atomic_transaction(self.database, "checkout") as session:
            cart_items = await self.cart_items.get_by_user_id(user_id, session)
            if not cart_items:
                raise EmptyCartException(user_id)

            # Fixed product order keeps lock acquisition order stable between checkouts
            lines = []
            for cart_item in sorted(cart_items, key=lambda item: item.product_id):
                await self.inventory.decrease_stock(cart_item.product_id, cart_item.quantity, session)
                lines.append(OrderLineDTO(product_id=cart_item.product_id,
                                          quantity=cart_item.quantity,
                                          unit_price=cart_item.unit_price,
                                          subtotal=cart_item.subtotal))

            total = sum((line.subtotal for line in lines), Decimal("0.00"))
            order = await self.orders.create(user_id, total, checkout.shipping_address, checkout.phone,
                                             checkout.notes, session)
            await self.order_lines.create_many(order.id, lines, session)
            await self.cart_items.delete_by_user_id(user_id, session)
            order_lines = await self.order_lines.get_by_order_id(order.id, session)

        logger.info(f"Order {order.id} created for user {user_id}: {len(order_lines)} lines, total {total}")
        return OrderDetailDTO(**order.model_dump(), lines=order_lines)

    async def change_status(self, order_id: int, new_status: OrderStatus | str) -> OrderDTO:
        """
        Move an order to a new status.

        Cancellation always goes through cancel() so stock is restored.

        Raises:
            OrderNotFoundException: order does not exist
            InvalidOrderStateException: transition not allowed from the current status
        """
        new_status = self._parse_status(new_status)
        if new_status == OrderStatus.CANCELLED:
            return await self.cancel(order_id)
        return await self._transition(order_id, new_status)

    @TransactionManager.with_retry()
    async def cancel(self, order_id: int) -> OrderDTO:
        """
        Cancel a pending or paid order and put its stock back.

        Raises:
            InvalidOrderStateException: order is shipped, delivered or already cancelled
        """
        async with TransactionManager.atomic_transaction(self.database, "cancel_order") as session:
            order = await self._get_order(order_id, session)
            if not OrderStateMachine.can_be_cancelled(order.status):
                raise InvalidOrderStateException(order_id, order.status.value, self._required_state(OrderStatus.CANCELLED))

            for line in await self.order_lines.get_by_order_id(order_id, session):
                await self.inventory.increase_stock(line.product_id, line.quantity, session)

            await self._apply_status(order, OrderStatus.CANCELLED, session)
            order = await self.orders.get_by_id(order_id, session)

        logger.info(f"Order {order_id} cancelled, stock restored")
        return order

    async def delete(self, order_id: int) -> None:
        raise OperationNotAllowedException(
            "delete_order",
            f"order {order_id} cannot be deleted, cancel it instead"
        )

    async def history_for_user(self, user_id: int) -> list[OrderDTO]:
        async with TransactionManager.read_session(self.database, "history_for_user") as session:
            return await self.orders.get_by_user_id(user_id, session)

    async def get_order(self, order_id: int) -> OrderDetailDTO:
        async with TransactionManager.read_session(self.database, "get_order") as session:
            order = await self._get_order(order_id, session)
            lines = await self.order_lines.get_by_order_id(order_id, session)
        return OrderDetailDTO(**order.model_dump(), lines=lines)

    async def list_by_status(self, status: OrderStatus | str) -> list[OrderDTO]:
        status = self._parse_status(status)
        async with TransactionManager.read_session(self.database, "list_by_status") as session:
            return await self.orders.get_by_status(status, session)

    async def best_selling_products(self, limit: int = 10) -> list[BestSellerDTO]:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationException("limit", "must be a positive integer")
        async with TransactionManager.read_session(self.database, "best_selling_products") as session:
            return await self.order_lines.get_best_sellers(limit, session)

    @TransactionManager.with_retry()
    async def _transition(self, order_id: int, new_status: OrderStatus) -> OrderDTO:
        async with TransactionManager.atomic_transaction(self.database, "change_order_status") as session:
            order = await self._get_order(order_id, session)
            await self._apply_status(order, new_status, session)
            return await self.orders.get_by_id(order_id, session)

    async def _apply_status(self, order: OrderDTO, new_status: OrderStatus,
                            session: AsyncSession) -> None:
        if not OrderStateMachine.validate_and_log_transition(order.id, order.status, new_status):
            raise InvalidOrderStateException(order.id, order.status.value, self._required_state(new_status))

        now = datetime.now()
        timestamps = {}
        if new_status == OrderStatus.PAID:
            timestamps['paid_at'] = now
        elif new_status == OrderStatus.SHIPPED and order.shipped_at is None:
            timestamps['shipped_at'] = now
        elif new_status == OrderStatus.DELIVERED and order.delivered_at is None:
            timestamps['delivered_at'] = now

        # Compare-and-set: a concurrent transition of the same order makes this a no-op
        if await self.orders.update_status(order.id, order.status, new_status, session, **timestamps) == 0:
            current = await self._get_order(order.id, session)
            raise InvalidOrderStateException(order.id, current.status.value, order.status.value)

    async def _get_order(self, order_id: int, session: AsyncSession) -> OrderDTO:
        order = await self.orders.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    @staticmethod
    def _required_state(new_status: OrderStatus) -> str:
        sources = [transition.from_status.value for transition in OrderStateMachine.VALID_TRANSITIONS
                   if transition.to_status == new_status]
        return " or ".join(sources) or "none"

    @staticmethod
    def _parse_status(status: OrderStatus | str) -> OrderStatus:
        if isinstance(status, OrderStatus):
            return status
        try:
            return OrderStatus.from_string(status)
        except ValueError as e:
            raise ValidationException("status", str(e)) from e
