import logging
from decimal import Decimal

from db import Database
from exceptions import (
    ProductNotFoundException,
    InactiveProductException,
    InsufficientStockException,
    CartItemNotFoundException,
)
from models.cartItem import CartItemDTO, CartLineDTO
from repositories.cartItem import CartItemRepository
from repositories.product import ProductRepository
from services.inventory import InventoryService
from utils.transaction_manager import TransactionManager
from utils.validation import validate_quantity

logger = logging.getLogger(__name__)


class CartService:
    """
    Per-user shopping cart: one row per (user, product).

    The product price is copied into the row when it is first added and is
    never refreshed afterwards. Quantities are checked against the product's
    current stock on every write; stock itself is only taken at checkout.
    """

    def __init__(self,
                 database: Database,
                 inventory_service: InventoryService | None = None,
                 product_repository=ProductRepository,
                 cart_item_repository=CartItemRepository):
        self.database = database
        self.inventory = inventory_service or InventoryService(database)
        self.products = product_repository
        self.cart_items = cart_item_repository

    async def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> CartItemDTO:
        """
        Add a product to the user's cart.

        If the product is already in the cart, the requested quantity replaces
        the stored one and the original price snapshot is kept.

        Raises:
            ProductNotFoundException: product does not exist
            InactiveProductException: product is deactivated
            InsufficientStockException: quantity exceeds current stock
        """
        validate_quantity(quantity)

        async with TransactionManager.atomic_transaction(self.database, "add_to_cart") as session:
            product = await self.products.get_by_id(product_id, session)
            if product is None:
                raise ProductNotFoundException(product_id)
            if not product.active:
                raise InactiveProductException(product_id)
            if not self.inventory.has_stock(product, quantity):
                raise InsufficientStockException(product_id, quantity, product.stock)

            existing = await self.cart_items.get_by_user_and_product(user_id, product_id, session)
            if existing is not None:
                await self.cart_items.update_quantity(existing.id, quantity, session)
                cart_item = await self.cart_items.get_by_id(existing.id, session)
                logger.info(f"Cart item {cart_item.id} for user {user_id}: quantity {existing.quantity} -> {quantity}")
                return cart_item

            cart_item = await self.cart_items.create(
                CartItemDTO(user_id=user_id, product_id=product_id, quantity=quantity, unit_price=product.price),
                session
            )

        logger.info(f"Product {product_id} x{quantity} added to cart of user {user_id} @ {cart_item.unit_price}")
        return cart_item

    async def update_quantity(self, cart_item_id: int, quantity: int) -> CartItemDTO:
        """Change a cart row's quantity, validated against current stock. The price snapshot stays."""
        validate_quantity(quantity)

        async with TransactionManager.atomic_transaction(self.database, "update_cart_quantity") as session:
            cart_item = await self.cart_items.get_by_id(cart_item_id, session)
            if cart_item is None:
                raise CartItemNotFoundException(cart_item_id)
            product = await self.products.get_by_id(cart_item.product_id, session)
            if product is None:
                raise ProductNotFoundException(cart_item.product_id)
            if not self.inventory.has_stock(product, quantity):
                raise InsufficientStockException(product.id, quantity, product.stock)

            await self.cart_items.update_quantity(cart_item_id, quantity, session)
            return await self.cart_items.get_by_id(cart_item_id, session)

    async def remove_item(self, cart_item_id: int) -> None:
        async with TransactionManager.atomic_transaction(self.database, "remove_cart_item") as session:
            if await self.cart_items.delete(cart_item_id, session) == 0:
                raise CartItemNotFoundException(cart_item_id)
        logger.info(f"Cart item {cart_item_id} removed")

    async def get_cart(self, user_id: int) -> list[CartLineDTO]:
        async with TransactionManager.read_session(self.database, "get_cart") as session:
            return await self.cart_items.get_lines_by_user_id(user_id, session)

    async def cart_total(self, user_id: int) -> Decimal:
        async with TransactionManager.read_session(self.database, "cart_total") as session:
            cart_items = await self.cart_items.get_by_user_id(user_id, session)
        return sum((cart_item.subtotal for cart_item in cart_items), Decimal("0.00"))

    async def clear_cart(self, user_id: int) -> int:
        async with TransactionManager.atomic_transaction(self.database, "clear_cart") as session:
            removed = await self.cart_items.delete_by_user_id(user_id, session)
        logger.info(f"Cart of user {user_id} cleared ({removed} items)")
        return removed
