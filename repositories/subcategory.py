from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from db import session_execute, session_flush
from models.subcategory import Subcategory, SubcategoryDTO, SubcategoryWriteDTO


class SubcategoryRepository:

    @staticmethod
    async def create(subcategory_dto: SubcategoryWriteDTO, category_id: int,
                     session: AsyncSession) -> SubcategoryDTO:
        subcategory = Subcategory(name=subcategory_dto.name,
                                  description=subcategory_dto.description,
                                  category_id=category_id,
                                  active=True)
        session.add(subcategory)
        await session_flush(session)
        return SubcategoryDTO.model_validate(subcategory, from_attributes=True)

    @staticmethod
    async def get_by_id(subcategory_id: int, session: AsyncSession) -> SubcategoryDTO | None:
        stmt = select(Subcategory).where(Subcategory.id == subcategory_id).execution_options(populate_existing=True)
        subcategory = await session_execute(stmt, session)
        subcategory = subcategory.scalar()
        if subcategory is None:
            return None
        return SubcategoryDTO.model_validate(subcategory, from_attributes=True)

    @staticmethod
    async def get_by_name(name: str, category_id: int, session: AsyncSession) -> SubcategoryDTO | None:
        stmt = select(Subcategory).where(Subcategory.name == name, Subcategory.category_id == category_id)
        subcategory = await session_execute(stmt, session)
        subcategory = subcategory.scalar()
        if subcategory is None:
            return None
        return SubcategoryDTO.model_validate(subcategory, from_attributes=True)

    @staticmethod
    async def get_by_category_id(category_id: int, session: AsyncSession,
                                 active: bool | None = None) -> list[SubcategoryDTO]:
        stmt = (select(Subcategory)
                .where(Subcategory.category_id == category_id)
                .order_by(Subcategory.name.asc())
                .execution_options(populate_existing=True))
        if active is not None:
            stmt = stmt.where(Subcategory.active.is_(active))
        subcategories = await session_execute(stmt, session)
        return [SubcategoryDTO.model_validate(subcategory, from_attributes=True)
                for subcategory in subcategories.scalars().all()]

    @staticmethod
    async def count_by_category_id(category_id: int, session: AsyncSession,
                                   active: bool | None = None) -> int:
        stmt = select(func.count(Subcategory.id)).where(Subcategory.category_id == category_id)
        if active is not None:
            stmt = stmt.where(Subcategory.active.is_(active))
        count = await session_execute(stmt, session)
        return count.scalar() or 0

    @staticmethod
    async def update(subcategory_id: int, values: dict, session: AsyncSession) -> int:
        if not values:
            return 0
        stmt = (update(Subcategory)
                .where(Subcategory.id == subcategory_id)
                .values(**values, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount

    @staticmethod
    async def set_active(subcategory_id: int, active: bool, session: AsyncSession) -> int:
        """Flip the flag only when it differs. Returns 1 if the row changed, else 0."""
        stmt = (update(Subcategory)
                .where(Subcategory.id == subcategory_id, Subcategory.active.is_not(active))
                .values(active=active, updated_at=datetime.now())
                .execution_options(synchronize_session=False))
        result = await session_execute(stmt, session)
        return result.rowcount
