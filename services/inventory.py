import logging

from sqlalchemy.ext.asyncio import AsyncSession

from db import Database
from exceptions import ProductNotFoundException, InsufficientStockException
from models.product import ProductDTO
from repositories.product import ProductRepository
from utils.transaction_manager import TransactionManager
from utils.validation import validate_quantity

logger = logging.getLogger(__name__)


class InventoryService:
    """
    Stock ledger for products.

    decrease_stock/increase_stock run inside the caller's transaction so that
    checkout and cancellation can move stock together with their own writes.
    Both are single conditional UPDATE statements; stock is never read into
    Python, modified and written back.
    """

    def __init__(self, database: Database, product_repository=ProductRepository):
        self.database = database
        self.products = product_repository

    @staticmethod
    def has_stock(product: ProductDTO, quantity: int) -> bool:
        return quantity <= product.stock

    async def decrease_stock(self, product_id: int, quantity: int, session: AsyncSession) -> int:
        """
        Atomically subtract quantity from the product's stock.

        Raises:
            ProductNotFoundException: product does not exist
            InsufficientStockException: quantity > stock, stock left unchanged

        Returns:
            Remaining stock
        """
        validate_quantity(quantity)
        updated = await self.products.decrease_stock(product_id, quantity, session)
        if updated == 0:
            available = await self.products.get_stock(product_id, session)
            if available is None:
                raise ProductNotFoundException(product_id)
            raise InsufficientStockException(product_id, quantity, available)

        remaining = await self.products.get_stock(product_id, session)
        logger.info(f"Stock decreased: product {product_id} -{quantity} (remaining {remaining})")
        return remaining

    async def increase_stock(self, product_id: int, quantity: int, session: AsyncSession) -> int:
        """
        Atomically add quantity to the product's stock.

        Returns:
            New stock
        """
        validate_quantity(quantity)
        updated = await self.products.increase_stock(product_id, quantity, session)
        if updated == 0:
            raise ProductNotFoundException(product_id)

        new_stock = await self.products.get_stock(product_id, session)
        logger.info(f"Stock increased: product {product_id} +{quantity} (now {new_stock})")
        return new_stock

    @TransactionManager.with_retry()
    async def restock(self, product_id: int, quantity: int) -> int:
        """Admin restocking in its own transaction."""
        async with TransactionManager.atomic_transaction(self.database, "restock") as session:
            return await self.increase_stock(product_id, quantity, session)

    async def get_stock(self, product_id: int) -> int:
        async with TransactionManager.read_session(self.database, "get_stock") as session:
            stock = await self.products.get_stock(product_id, session)
        if stock is None:
            raise ProductNotFoundException(product_id)
        return stock
