from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

import config
from models.base import Base


def validate_image_name(v: str | None) -> str | None:
    """
    Validate an image asset name.

    Only the opaque file name is stored; the bytes live in the uploads folder.
    Accepted extensions come from config.ALLOWED_IMAGE_EXTENSIONS (case-insensitive).
    """
    if v is None:
        return None
    v = v.strip()
    if v == "":
        return None
    if len(v) > 255:
        raise ValueError("Image name must be at most 255 characters")
    extension = v.rsplit(".", 1)[-1].lower() if "." in v else ""
    if extension not in config.ALLOWED_IMAGE_EXTENSIONS:
        allowed = ", ".join(config.ALLOWED_IMAGE_EXTENSIONS)
        raise ValueError(f"Image must have one of the extensions: {allowed}")
    return v


class Product(Base):
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True, unique=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    image_name = Column(String(255), nullable=True)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete="RESTRICT"), nullable=False, index=True)
    subcategory_id = Column(Integer, ForeignKey('subcategories.id', ondelete="RESTRICT"), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.now)

    # Relationships
    category = relationship("Category", back_populates="products")
    subcategory = relationship("Subcategory", back_populates="products")

    __table_args__ = (
        CheckConstraint('price >= 0', name='price_non_negative'),
        CheckConstraint('stock >= 0', name='stock_non_negative'),
    )


class ProductDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    description: str | None = None
    price: Decimal | None = None
    stock: int | None = None
    image_name: str | None = None
    category_id: int | None = None
    subcategory_id: int | None = None
    active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductCreateDTO(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    image_name: str | None = None
    category_id: int
    subcategory_id: int

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('image_name')
    @classmethod
    def check_image_name(cls, v):
        return validate_image_name(v)


class ProductUpdateDTO(BaseModel):
    """Partial update. Only fields that were explicitly set are written."""
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=2, max_length=200)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2)
    image_name: str | None = None

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator('image_name')
    @classmethod
    def check_image_name(cls, v):
        return validate_image_name(v)
