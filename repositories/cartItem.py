from datetime import datetime

from sqlalchemy import select, update, delete
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from models.cartItem import CartItem, CartItemDTO, CartLineDTO
from models.product import Product


class CartItemRepository:

    @staticmethod
    async def create(cart_item_dto: CartItemDTO, session: AsyncSession) -> CartItemDTO:
        cart_item = CartItem(user_id=cart_item_dto.user_id,
                             product_id=cart_item_dto.product_id,
                             quantity=cart_item_dto.quantity,
                             unit_price=cart_item_dto.unit_price)
        session.add(cart_item)
        await session_flush(session)
        return CartItemDTO.model_validate(cart_item, from_attributes=True)

    @staticmethod
    async def get_by_id(cart_item_id: int, session: AsyncSession) -> CartItemDTO | None:
        stmt = select(CartItem).where(CartItem.id == cart_item_id).execution_options(populate_existing=True)
        cart_item = await session_execute(stmt, session)
        cart_item = cart_item.scalar()
        if cart_item is None:
            return None
        return CartItemDTO.model_validate(cart_item, from_attributes=True)

    @staticmethod
    async def get_by_user_and_product(user_id: int, product_id: int,
                                      session: AsyncSession) -> CartItemDTO | None:
        stmt = (select(CartItem)
                .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
                .execution_options(populate_existing=True))
        cart_item = await session_execute(stmt, session)
        cart_item = cart_item.scalar()
        if cart_item is None:
            return None
        return CartItemDTO.model_validate(cart_item, from_attributes=True)

    @staticmethod
    async def get_by_user_id(user_id: int, session: AsyncSession) -> list[CartItemDTO]:
        # Most recently added first; id breaks ties within the same timestamp
        stmt = (select(CartItem)
                .where(CartItem.user_id == user_id)
                .order_by(CartItem.created_at.desc(), CartItem.id.desc())
                .execution_options(populate_existing=True))
        cart_items = await session_execute(stmt, session)
        return [CartItemDTO.model_validate(cart_item, from_attributes=True)
                for cart_item in cart_items.scalars().all()]

    @staticmethod
    async def get_lines_by_user_id(user_id: int, session: AsyncSession) -> list[CartLineDTO]:
        """Cart rows joined with product display data, most recently added first."""
        stmt = (select(CartItem, Product)
                .join(Product, Product.id == CartItem.product_id)
                .where(CartItem.user_id == user_id)
                .order_by(CartItem.created_at.desc(), CartItem.id.desc())
                .execution_options(populate_existing=True))
        rows = await session_execute(stmt, session)
        return [
            CartLineDTO(
                id=cart_item.id,
                product_id=product.id,
                quantity=cart_item.quantity,
                unit_price=cart_item.unit_price,
                subtotal=cart_item.unit_price * cart_item.quantity,
                product_name=product.name,
                product_image_name=product.image_name,
                current_price=product.price,
                available_stock=product.stock,
                product_active=product.active,
                created_at=cart_item.created_at,
            )
            for cart_item, product in rows.all()
        ]

    @staticmethod
    async def update_quantity(cart_item_id: int, quantity: int, session: AsyncSession) -> int:
        stmt = (update(CartItem)
                .where(CartItem.id == cart_item_id)
                .values(quantity=quantity, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def delete(cart_item_id: int, session: AsyncSession) -> int:
        stmt = delete(CartItem).where(CartItem.id == cart_item_id).execution_options(synchronize_session=False)
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def delete_by_user_id(user_id: int, session: AsyncSession) -> int:
        stmt = delete(CartItem).where(CartItem.user_id == user_id).execution_options(synchronize_session=False)
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def delete_by_product_id(product_id: int, session: AsyncSession) -> int:
        stmt = delete(CartItem).where(CartItem.product_id == product_id).execution_options(synchronize_session=False)
        result = await session_execute(stmt, session)
        return result.rowcount
