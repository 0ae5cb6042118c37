from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Numeric, ForeignKey, CheckConstraint, Index
from sqlalchemy.orm import relationship

from models.base import Base


class OrderLine(Base):
    __tablename__ = 'order_lines'

    __table_args__ = (
        CheckConstraint('quantity > 0', name='quantity_positive'),
        CheckConstraint('unit_price >= 0', name='unit_price_non_negative'),
        CheckConstraint('subtotal >= 0', name='subtotal_non_negative'),

        Index('ix_order_lines_order_id', 'order_id'),
        Index('ix_order_lines_product_id', 'product_id'),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    # Sold products cannot disappear from under an order
    product_id = Column(Integer, ForeignKey('products.id', ondelete='RESTRICT'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    # Relationships
    order = relationship("Order", back_populates="lines")
    product = relationship("Product")


class OrderLineDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    product_id: int | None = None
    product_name: str | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None
    subtotal: Decimal | None = None


class BestSellerDTO(BaseModel):
    product_id: int
    product_name: str
    units_sold: int
