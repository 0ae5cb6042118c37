from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from enums.order_status import OrderStatus
from models.order import Order, OrderDTO


class OrderRepository:

    @staticmethod
    async def create(user_id: int, total: Decimal, shipping_address: str, phone: str, notes: str | None,
                     session: AsyncSession) -> OrderDTO:
        order = Order(user_id=user_id,
                      total=total,
                      status=OrderStatus.PENDING,
                      shipping_address=shipping_address,
                      phone=phone,
                      notes=notes)
        session.add(order)
        await session_flush(session)
        return OrderDTO.model_validate(order, from_attributes=True)

    @staticmethod
    async def get_by_id(order_id: int, session: AsyncSession) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        order = await session_execute(stmt, session)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        else:
            return None

    @staticmethod
    async def get_by_user_id(user_id: int, session: AsyncSession) -> list[OrderDTO]:
        stmt = (select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .execution_options(populate_existing=True))
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_by_status(status: OrderStatus, session: AsyncSession) -> list[OrderDTO]:
        stmt = (select(Order)
                .where(Order.status == status)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .execution_options(populate_existing=True))
        orders = await session_execute(stmt, session)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def update_status(order_id: int, expected_status: OrderStatus, new_status: OrderStatus,
                            session: AsyncSession, **timestamps: datetime) -> int:
        """
        Compare-and-set status update.

        The row only changes if it is still in expected_status, so two concurrent
        transitions from the same state cannot both succeed.

        Returns:
            1 if the row was updated, 0 otherwise
        """
        stmt = (update(Order)
                .where(Order.id == order_id, Order.status == expected_status)
                .values(status=new_status, updated_at=datetime.now(), **timestamps)
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount
