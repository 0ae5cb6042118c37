from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from models.base import Base


# A cart row is one (user, product) pair. unit_price is the product price at the
# moment the row was inserted; later price changes never touch it.
class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.now)

    product = relationship("Product")

    __table_args__ = (
        CheckConstraint('quantity > 0', name='quantity_positive'),
        CheckConstraint('unit_price >= 0', name='unit_price_non_negative'),
        UniqueConstraint('user_id', 'product_id', name='uq_cart_items_user_product'),
    )


class CartItemDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    product_id: int | None = None
    quantity: int | None = None
    unit_price: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class CartLineDTO(BaseModel):
    """Cart row joined with the product display data."""
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    product_name: str
    product_image_name: str | None = None
    current_price: Decimal
    available_stock: int
    product_active: bool
    created_at: datetime | None = None
