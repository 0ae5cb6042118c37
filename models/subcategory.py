from datetime import datetime

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Integer, Column, String, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from models.base import Base


class Subcategory(Base):
    __tablename__ = 'subcategories'

    id = Column(Integer, primary_key=True, unique=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category_id = Column(Integer, ForeignKey('categories.id', ondelete="RESTRICT"), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=True, onupdate=datetime.now)

    # Relationships
    category = relationship("Category", back_populates="subcategories")
    products = relationship("Product", back_populates="subcategory", passive_deletes="all")

    __table_args__ = (
        UniqueConstraint('name', 'category_id', name='uq_subcategories_name_category'),
    )


class SubcategoryDTO(BaseModel):
    id: int | None = None
    name: str | None = None
    description: str | None = None
    category_id: int | None = None
    active: bool | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SubcategoryWriteDTO(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    description: str | None = None

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v
