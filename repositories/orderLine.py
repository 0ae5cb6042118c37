from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from enums.order_status import OrderStatus
from models.order import Order
from models.orderLine import OrderLine, OrderLineDTO, BestSellerDTO
from models.product import Product


class OrderLineRepository:

    @staticmethod
    async def create_many(order_id: int, lines: list[OrderLineDTO], session: AsyncSession) -> list[OrderLineDTO]:
        order_lines = [
            OrderLine(order_id=order_id,
                      product_id=line.product_id,
                      quantity=line.quantity,
                      unit_price=line.unit_price,
                      subtotal=line.subtotal)
            for line in lines
        ]
        session.add_all(order_lines)
        await session_flush(session)
        return [OrderLineDTO.model_validate(order_line, from_attributes=True) for order_line in order_lines]

    @staticmethod
    async def get_by_order_id(order_id: int, session: AsyncSession) -> list[OrderLineDTO]:
        """Order lines joined with the product name."""
        stmt = (select(OrderLine, Product.name)
                .join(Product, Product.id == OrderLine.product_id)
                .where(OrderLine.order_id == order_id)
                .order_by(OrderLine.id.asc()))
        rows = await session_execute(stmt, session)
        result = []
        for order_line, product_name in rows.all():
            line_dto = OrderLineDTO.model_validate(order_line, from_attributes=True)
            line_dto.product_name = product_name
            result.append(line_dto)
        return result

    @staticmethod
    async def get_best_sellers(limit: int, session: AsyncSession) -> list[BestSellerDTO]:
        units_sold = func.sum(OrderLine.quantity).label("units_sold")
        stmt = (select(OrderLine.product_id, Product.name, units_sold)
                .join(Product, Product.id == OrderLine.product_id)
                .join(Order, Order.id == OrderLine.order_id)
                .where(Order.status != OrderStatus.CANCELLED)
                .group_by(OrderLine.product_id, Product.name)
                .order_by(units_sold.desc(), OrderLine.product_id.asc())
                .limit(limit))
        rows = await session_execute(stmt, session)
        return [BestSellerDTO(product_id=product_id, product_name=name, units_sold=int(total))
                for product_id, name, total in rows.all()]
