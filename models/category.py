from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Integer, Column, String, Text, Boolean, DateTime
from sqlalchemy.orm import relationship

from models.base import Base


class Category(Base):
    __tablename__ = 'categories'

    id = Column(Integer, primary_key=True, unique=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.now)

    # Relationships
    subcategories = relationship("Subcategory", back_populates="category", passive_deletes="all")
    products = relationship("Product", back_populates="category", passive_deletes="all")


class CategoryDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    description: str | None = None
    active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryWriteDTO(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str | None = None

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class CategoryStatsDTO(BaseModel):
    category_id: int
    active_subcategories: int
    total_subcategories: int
    total_products: int
    active_products: int


class CascadeResultDTO(BaseModel):
    """Rows actually switched from active to inactive by a deactivation."""
    subcategories_affected: int = 0
    products_affected: int = 0
