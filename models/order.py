from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Column, Integer, Numeric, DateTime, String, Text, CheckConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.order_status import OrderStatus
from models.base import Base
from models.orderLine import OrderLineDTO


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True, unique=True)
    user_id = Column(Integer, nullable=False, index=True)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(SQLEnum(OrderStatus, values_callable=lambda e: [s.value for s in e], native_enum=False),
                    nullable=False, default=OrderStatus.PENDING, index=True)
    shipping_address = Column(Text, nullable=False)
    phone = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.now)

    # Lines go with the order (ON DELETE CASCADE), the order itself is never deleted by the engine
    lines = relationship("OrderLine", back_populates="order", cascade="all, delete-orphan",
                         passive_deletes=True, order_by="OrderLine.id")

    __table_args__ = (
        CheckConstraint('total >= 0', name='total_non_negative'),
        Index('ix_orders_created_at', 'created_at'),
    )

class OrderDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    total: Decimal | None = None
    status: OrderStatus | None = None
    shipping_address: str | None = None
    phone: str | None = None
    notes: str | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

class OrderDetailDTO(OrderDTO):
    lines: list[OrderLineDTO] = []


class CheckoutDTO(BaseModel):
    shipping_address: str = Field(min_length=1)
    phone: str = Field(min_length=1, max_length=20)
    notes: str | None = None

    @field_validator('shipping_address', 'phone', mode='before')
    @classmethod
    def strip_value(cls, v):
        return v.strip() if isinstance(v, str) else v
