from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from models.category import Category, CategoryDTO, CategoryWriteDTO


class CategoryRepository:

    @staticmethod
    async def create(category_dto: CategoryWriteDTO, session: AsyncSession) -> CategoryDTO:
        category = Category(name=category_dto.name, description=category_dto.description, active=True)
        session.add(category)
        await session_flush(session)
        return CategoryDTO.model_validate(category, from_attributes=True)

    @staticmethod
    async def get_by_id(category_id: int, session: AsyncSession) -> CategoryDTO | None:
        stmt = select(Category).where(Category.id == category_id).execution_options(populate_existing=True)
        category = await session_execute(stmt, session)
        category = category.scalar()
        if category is None:
            return None
        return CategoryDTO.model_validate(category, from_attributes=True)

    @staticmethod
    async def get_by_name(name: str, session: AsyncSession) -> CategoryDTO | None:
        stmt = select(Category).where(Category.name == name)
        category = await session_execute(stmt, session)
        category = category.scalar()
        if category is None:
            return None
        return CategoryDTO.model_validate(category, from_attributes=True)

    @staticmethod
    async def get_all(session: AsyncSession, active: bool | None = None) -> list[CategoryDTO]:
        stmt = select(Category).order_by(Category.name.asc())
        if active is not None:
            stmt = stmt.where(Category.active.is_(active))
        categories = await session_execute(stmt, session)
        return [CategoryDTO.model_validate(category, from_attributes=True) for category in categories.scalars().all()]

    @staticmethod
    async def update(category_id: int, values: dict, session: AsyncSession) -> int:
        if not values:
            return 0
        stmt = (update(Category)
                .where(Category.id == category_id)
                .values(**values, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def set_active(category_id: int, active: bool, session: AsyncSession) -> int:
        """Flip the flag only when it differs. Returns 1 if the row changed, else 0."""
        stmt = (update(Category)
                .where(Category.id == category_id, Category.active.is_not(active))
                .values(active=active, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount
