from datetime import datetime

from sqlalchemy import select, update, delete, func, exists
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from models.orderLine import OrderLine
from models.product import Product, ProductDTO, ProductCreateDTO


class ProductRepository:

    @staticmethod
    async def create(product_dto: ProductCreateDTO, session: AsyncSession) -> ProductDTO:
        product = Product(**product_dto.model_dump(), active=True)
        session.add(product)
        await session_flush(session)
        return ProductDTO.model_validate(product, from_attributes=True)

    @staticmethod
    async def get_by_id(product_id: int, session: AsyncSession) -> ProductDTO | None:
        stmt = select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        product = await session_execute(stmt, session)
        product = product.scalar()
        if product is None:
            return None
        return ProductDTO.model_validate(product, from_attributes=True)

    @staticmethod
    async def get_all(session: AsyncSession,
                      category_id: int | None = None,
                      subcategory_id: int | None = None,
                      active: bool | None = None) -> list[ProductDTO]:
        stmt = select(Product).order_by(Product.name.asc(), Product.id.asc()).execution_options(populate_existing=True)
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if subcategory_id is not None:
            stmt = stmt.where(Product.subcategory_id == subcategory_id)
        if active is not None:
            stmt = stmt.where(Product.active.is_(active))
        products = await session_execute(stmt, session)
        return [ProductDTO.model_validate(product, from_attributes=True) for product in products.scalars().all()]

    @staticmethod
    async def count(session: AsyncSession,
                    category_id: int | None = None,
                    subcategory_id: int | None = None,
                    active: bool | None = None) -> int:
        stmt = select(func.count(Product.id))
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if subcategory_id is not None:
            stmt = stmt.where(Product.subcategory_id == subcategory_id)
        if active is not None:
            stmt = stmt.where(Product.active.is_(active))
        count = await session_execute(stmt, session)
        return count.scalar() or 0

    @staticmethod
    async def update(product_id: int, values: dict, session: AsyncSession) -> int:
        if not values:
            return 0
        stmt = (update(Product)
                .where(Product.id == product_id)
                .values(**values, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def set_active(product_id: int, active: bool, session: AsyncSession) -> int:
        stmt = (update(Product)
                .where(Product.id == product_id, Product.active.is_not(active))
                .values(active=active, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def deactivate_by_subcategory_id(subcategory_id: int, session: AsyncSession) -> int:
        """Deactivate every active product of a subcategory. Returns the number of rows changed."""
        stmt = (update(Product)
                .where(Product.subcategory_id == subcategory_id, Product.active.is_(True))
                .values(active=False, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def deactivate_by_category_id(category_id: int, session: AsyncSession) -> int:
        stmt = (update(Product)
                .where(Product.category_id == category_id, Product.active.is_(True))
                .values(active=False, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def get_stock(product_id: int, session: AsyncSession) -> int | None:
        stmt = select(Product.stock).where(Product.id == product_id)
        stock = await session_execute(stmt, session)
        return stock.scalar()

    @staticmethod
    async def decrease_stock(product_id: int, quantity: int, session: AsyncSession) -> int:
        """
        Conditional atomic decrement: stock = stock - quantity WHERE stock >= quantity.

        Returns:
            1 if the stock was decremented, 0 if the row is missing or stock is insufficient
        """
        stmt = (update(Product)
                .where(Product.id == product_id, Product.stock >= quantity)
                .values(stock=Product.stock - quantity)
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def increase_stock(product_id: int, quantity: int, session: AsyncSession) -> int:
        stmt = (update(Product)
                .where(Product.id == product_id)
                .values(stock=Product.stock + quantity)
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def has_order_lines(product_id: int, session: AsyncSession) -> bool:
        stmt = select(exists().where(OrderLine.product_id == product_id))
        result = await session_execute(stmt, session)
        return bool(result.scalar())

    @staticmethod
    async def delete(product_id: int, session: AsyncSession) -> int:
        stmt = delete(Product).where(Product.id == product_id).execution_options(synchronize_session=False)
        result = await session_execute(stmt, session)
        return result.rowcount
