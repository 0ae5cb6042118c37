import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

import config
from db import Database
from exceptions import (
    CategoryNotFoundException,
    SubcategoryNotFoundException,
    ProductNotFoundException,
    DuplicateNameException,
    InactiveParentException,
    CategoryMismatchException,
    OperationNotAllowedException,
    ValidationException,
)
from models.category import CategoryDTO, CategoryWriteDTO, CategoryStatsDTO, CascadeResultDTO
from models.product import ProductDTO, ProductCreateDTO, ProductUpdateDTO
from models.subcategory import SubcategoryDTO, SubcategoryWriteDTO
from repositories.cartItem import CartItemRepository
from repositories.category import CategoryRepository
from repositories.product import ProductRepository
from repositories.subcategory import SubcategoryRepository
from services.assets import AssetStorage, LocalAssetStorage
from utils.transaction_manager import TransactionManager
from utils.validation import validate_dto

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Categories, subcategories and products.

    Activation rules:
    - Deactivating a category deactivates all of its subcategories, their
      products and any other product filed under the category.
    - Deactivating a subcategory deactivates its products.
    - Reactivation never cascades. Products can only be reactivated while
      their category and subcategory are active.

    Every cascade runs in a single transaction; a failure anywhere rolls back
    the whole deactivation.
    """

    def __init__(self,
                 database: Database,
                 asset_storage: AssetStorage | None = None,
                 category_repository=CategoryRepository,
                 subcategory_repository=SubcategoryRepository,
                 product_repository=ProductRepository,
                 cart_item_repository=CartItemRepository):
        self.database = database
        self.asset_storage = asset_storage or LocalAssetStorage()
        self.categories = category_repository
        self.subcategories = subcategory_repository
        self.products = product_repository
        self.cart_items = cart_item_repository

    # ========================================================================
    # Categories
    # ========================================================================

    async def create_category(self, name: str, description: str | None = None) -> CategoryDTO:
        category_dto = validate_dto(CategoryWriteDTO, name=name, description=description)
        try:
            async with TransactionManager.atomic_transaction(self.database, "create_category") as session:
                if await self.categories.get_by_name(category_dto.name, session) is not None:
                    raise DuplicateNameException("Category", category_dto.name)
                category = await self.categories.create(category_dto, session)
        except IntegrityError as e:
            # Lost a race against a concurrent insert of the same name
            raise DuplicateNameException("Category", category_dto.name) from e

        logger.info(f"Category {category.id} '{category.name}' created")
        return category

    async def update_category(self, category_id: int, name: str | None = None,
                              description: str | None = None) -> CategoryDTO:
        duplicate_name = name
        try:
            async with TransactionManager.atomic_transaction(self.database, "update_category") as session:
                category = await self._get_category(category_id, session)
                category_dto = validate_dto(
                    CategoryWriteDTO,
                    name=category.name if name is None else name,
                    description=category.description if description is None else description
                )
                duplicate_name = category_dto.name
                if category_dto.name != category.name:
                    existing = await self.categories.get_by_name(category_dto.name, session)
                    if existing is not None and existing.id != category_id:
                        raise DuplicateNameException("Category", category_dto.name)
                await self.categories.update(category_id, category_dto.model_dump(), session)
                category = await self.categories.get_by_id(category_id, session)
        except IntegrityError as e:
            raise DuplicateNameException("Category", duplicate_name) from e

        logger.info(f"Category {category_id} updated")
        return category

    async def set_category_active(self, category_id: int, active: bool) -> CascadeResultDTO:
        """
        Activate or deactivate a category.

        Deactivation walks every subcategory (each deactivating its own
        products) and then sweeps products attached to the category directly.
        Setting the current value changes nothing.

        Returns:
            CascadeResultDTO with the number of rows actually deactivated
        """
        async with TransactionManager.atomic_transaction(self.database, "set_category_active") as session:
            category = await self._get_category(category_id, session)
            return await self._set_category_active(category, active, session)

    async def toggle_category(self, category_id: int) -> CascadeResultDTO:
        """Flip a category's active flag, cascading like set_category_active()."""
        async with TransactionManager.atomic_transaction(self.database, "toggle_category") as session:
            category = await self._get_category(category_id, session)
            return await self._set_category_active(category, not category.active, session)

    async def get_category(self, category_id: int) -> CategoryDTO:
        async with TransactionManager.read_session(self.database, "get_category") as session:
            return await self._get_category(category_id, session)

    async def list_categories(self, active: bool | None = None) -> list[CategoryDTO]:
        async with TransactionManager.read_session(self.database, "list_categories") as session:
            return await self.categories.get_all(session, active=active)

    async def count_active_subcategories(self, category_id: int) -> int:
        async with TransactionManager.read_session(self.database, "count_active_subcategories") as session:
            await self._get_category(category_id, session)
            return await self.subcategories.count_by_category_id(category_id, session, active=True)

    async def count_products(self, category_id: int) -> int:
        async with TransactionManager.read_session(self.database, "count_products") as session:
            await self._get_category(category_id, session)
            return await self.products.count(session, category_id=category_id)

    async def category_stats(self, category_id: int) -> CategoryStatsDTO:
        async with TransactionManager.read_session(self.database, "category_stats") as session:
            await self._get_category(category_id, session)
            return CategoryStatsDTO(
                category_id=category_id,
                active_subcategories=await self.subcategories.count_by_category_id(category_id, session, active=True),
                total_subcategories=await self.subcategories.count_by_category_id(category_id, session),
                total_products=await self.products.count(session, category_id=category_id),
                active_products=await self.products.count(session, category_id=category_id, active=True)
            )

    # ========================================================================
    # Subcategories
    # ========================================================================

    async def create_subcategory(self, name: str, category_id: int,
                                 description: str | None = None) -> SubcategoryDTO:
        subcategory_dto = validate_dto(SubcategoryWriteDTO, name=name, description=description)
        try:
            async with TransactionManager.atomic_transaction(self.database, "create_subcategory") as session:
                category = await self._get_category(category_id, session)
                if not category.active:
                    raise InactiveParentException("Subcategory", "Category", category_id)
                if await self.subcategories.get_by_name(subcategory_dto.name, category_id, session) is not None:
                    raise DuplicateNameException("Subcategory", subcategory_dto.name, category_id)
                subcategory = await self.subcategories.create(subcategory_dto, category_id, session)
        except IntegrityError as e:
            raise DuplicateNameException("Subcategory", subcategory_dto.name, category_id) from e

        logger.info(f"Subcategory {subcategory.id} '{subcategory.name}' created in category {category_id}")
        return subcategory

    async def update_subcategory(self, subcategory_id: int, name: str | None = None,
                                 description: str | None = None) -> SubcategoryDTO:
        duplicate_name, parent_id = name, None
        try:
            async with TransactionManager.atomic_transaction(self.database, "update_subcategory") as session:
                subcategory = await self._get_subcategory(subcategory_id, session)
                subcategory_dto = validate_dto(
                    SubcategoryWriteDTO,
                    name=subcategory.name if name is None else name,
                    description=subcategory.description if description is None else description
                )
                duplicate_name, parent_id = subcategory_dto.name, subcategory.category_id
                if subcategory_dto.name != subcategory.name:
                    existing = await self.subcategories.get_by_name(subcategory_dto.name,
                                                                    subcategory.category_id, session)
                    if existing is not None and existing.id != subcategory_id:
                        raise DuplicateNameException("Subcategory", subcategory_dto.name, subcategory.category_id)
                await self.subcategories.update(subcategory_id, subcategory_dto.model_dump(), session)
                subcategory = await self.subcategories.get_by_id(subcategory_id, session)
        except IntegrityError as e:
            raise DuplicateNameException("Subcategory", duplicate_name, parent_id) from e

        logger.info(f"Subcategory {subcategory_id} updated")
        return subcategory

    async def set_subcategory_active(self, subcategory_id: int, active: bool) -> CascadeResultDTO:
        """
        Activate or deactivate a subcategory.

        Deactivation cascades to the subcategory's products. Reactivation is
        refused while the parent category is inactive.
        """
        async with TransactionManager.atomic_transaction(self.database, "set_subcategory_active") as session:
            subcategory = await self._get_subcategory(subcategory_id, session)
            if subcategory.active == active:
                return CascadeResultDTO()

            if active:
                category = await self._get_category(subcategory.category_id, session)
                if not category.active:
                    raise InactiveParentException("Subcategory", "Category", category.id)
                await self.subcategories.set_active(subcategory_id, True, session)
                logger.info(f"Subcategory {subcategory_id} activated")
                return CascadeResultDTO()

            result = await self._deactivate_subcategory(subcategory_id, session)

        return result

    async def get_subcategory(self, subcategory_id: int) -> SubcategoryDTO:
        async with TransactionManager.read_session(self.database, "get_subcategory") as session:
            return await self._get_subcategory(subcategory_id, session)

    async def list_subcategories(self, category_id: int, active: bool | None = None) -> list[SubcategoryDTO]:
        async with TransactionManager.read_session(self.database, "list_subcategories") as session:
            await self._get_category(category_id, session)
            return await self.subcategories.get_by_category_id(category_id, session, active=active)

    async def count_subcategory_products(self, subcategory_id: int) -> int:
        async with TransactionManager.read_session(self.database, "count_subcategory_products") as session:
            await self._get_subcategory(subcategory_id, session)
            return await self.products.count(session, subcategory_id=subcategory_id)

    # ========================================================================
    # Products
    # ========================================================================

    async def create_product(self, name: str, price: Decimal | str | int, category_id: int, subcategory_id: int,
                             description: str | None = None, stock: int = 0,
                             image_name: str | None = None) -> ProductDTO:
        product_dto = validate_dto(ProductCreateDTO, name=name, price=price, stock=stock,
                                   description=description, image_name=image_name,
                                   category_id=category_id, subcategory_id=subcategory_id)

        async with TransactionManager.atomic_transaction(self.database, "create_product") as session:
            category = await self._get_category(category_id, session)
            subcategory = await self._get_subcategory(subcategory_id, session)
            if not category.active:
                raise InactiveParentException("Product", "Category", category_id)
            if not subcategory.active:
                raise InactiveParentException("Product", "Subcategory", subcategory_id)
            if subcategory.category_id != category_id:
                raise CategoryMismatchException(subcategory_id, category_id, subcategory.category_id)
            product = await self.products.create(product_dto, session)

        logger.info(f"Product {product.id} '{product.name}' created "
                    f"(category {category_id}, subcategory {subcategory_id}, stock {product.stock})")
        return product

    async def update_product(self, product_id: int, **changes) -> ProductDTO:
        """
        Partial product update: name, description, price, image_name.

        Price changes apply to future cart rows only; snapshots in existing
        carts and orders keep the price they were taken at. A replaced image
        is removed from asset storage after the commit.
        """
        update_dto = validate_dto(ProductUpdateDTO, **changes)
        values = update_dto.model_dump(exclude_unset=True)
        for required in ("name", "price"):
            if required in values and values[required] is None:
                raise ValidationException(required, "cannot be empty")

        async with TransactionManager.atomic_transaction(self.database, "update_product") as session:
            product = await self._get_product(product_id, session)
            await self.products.update(product_id, values, session)
            updated = await self.products.get_by_id(product_id, session)

        logger.info(f"Product {product_id} updated: {', '.join(values) or 'no changes'}")
        if "image_name" in values and product.image_name and product.image_name != updated.image_name:
            await self._delete_asset(product.image_name)
        return updated

    async def set_product_active(self, product_id: int, active: bool) -> ProductDTO:
        async with TransactionManager.atomic_transaction(self.database, "set_product_active") as session:
            product = await self._get_product(product_id, session)
            if active and not product.active:
                category = await self._get_category(product.category_id, session)
                if not category.active:
                    raise InactiveParentException("Product", "Category", category.id)
                subcategory = await self._get_subcategory(product.subcategory_id, session)
                if not subcategory.active:
                    raise InactiveParentException("Product", "Subcategory", subcategory.id)
            if await self.products.set_active(product_id, active, session):
                logger.info(f"Product {product_id} {'activated' if active else 'deactivated'}")
            return await self.products.get_by_id(product_id, session)

    async def delete_product(self, product_id: int) -> ProductDTO:
        """
        Remove a product together with the cart rows that reference it.

        Products that appear in any order line are kept for order history and
        cannot be deleted (deactivate them instead). The image asset is
        removed after the commit on a best effort basis.

        Returns:
            The deleted product
        """
        async with TransactionManager.atomic_transaction(self.database, "delete_product") as session:
            product = await self._get_product(product_id, session)
            if await self.products.has_order_lines(product_id, session):
                raise OperationNotAllowedException(
                    "delete_product",
                    f"product {product_id} is referenced by existing orders, deactivate it instead"
                )
            removed_from_carts = await self.cart_items.delete_by_product_id(product_id, session)
            await self.products.delete(product_id, session)

        logger.info(f"Product {product_id} deleted (removed from {removed_from_carts} carts)")
        if product.image_name:
            await self._delete_asset(product.image_name)
        return product

    async def get_product(self, product_id: int) -> ProductDTO:
        async with TransactionManager.read_session(self.database, "get_product") as session:
            return await self._get_product(product_id, session)

    async def list_products(self, category_id: int | None = None, subcategory_id: int | None = None,
                            active: bool | None = None) -> list[ProductDTO]:
        async with TransactionManager.read_session(self.database, "list_products") as session:
            return await self.products.get_all(session, category_id=category_id,
                                               subcategory_id=subcategory_id, active=active)

    @staticmethod
    def product_image_url(product: ProductDTO, base_url: str | None = None) -> str | None:
        if not product.image_name:
            return None
        base_url = (base_url or config.FRONTEND_URL).rstrip("/")
        return f"{base_url}/uploads/{product.image_name}"

    # ========================================================================
    # Helpers
    # ========================================================================

    async def _set_category_active(self, category: CategoryDTO, active: bool,
                                   session: AsyncSession) -> CascadeResultDTO:
        if category.active == active:
            return CascadeResultDTO()

        await self.categories.set_active(category.id, active, session)
        if active:
            logger.info(f"Category {category.id} activated")
            return CascadeResultDTO()

        result = CascadeResultDTO()
        for subcategory in await self.subcategories.get_by_category_id(category.id, session):
            sub_result = await self._deactivate_subcategory(subcategory.id, session)
            result.subcategories_affected += sub_result.subcategories_affected
            result.products_affected += sub_result.products_affected

        result.products_affected += await self.products.deactivate_by_category_id(category.id, session)

        logger.info(f"Category {category.id} deactivated: "
                    f"{result.subcategories_affected} subcategories, {result.products_affected} products")
        return result

    async def _deactivate_subcategory(self, subcategory_id: int,
                                      session: AsyncSession) -> CascadeResultDTO:
        changed = await self.subcategories.set_active(subcategory_id, False, session)
        products_changed = await self.products.deactivate_by_subcategory_id(subcategory_id, session)
        if changed or products_changed:
            logger.info(f"Subcategory {subcategory_id} deactivated ({products_changed} products)")
        return CascadeResultDTO(subcategories_affected=changed, products_affected=products_changed)

    async def _delete_asset(self, asset_name: str) -> None:
        try:
            if not await self.asset_storage.delete(asset_name):
                logger.warning(f"Asset {asset_name} was already missing")
        except Exception as e:
            logger.warning(f"Failed to delete asset {asset_name}: {e}")

    async def _get_category(self, category_id: int, session: AsyncSession) -> CategoryDTO:
        category = await self.categories.get_by_id(category_id, session)
        if category is None:
            raise CategoryNotFoundException(category_id)
        return category

    async def _get_subcategory(self, subcategory_id: int, session: AsyncSession) -> SubcategoryDTO:
        subcategory = await self.subcategories.get_by_id(subcategory_id, session)
        if subcategory is None:
            raise SubcategoryNotFoundException(subcategory_id)
        return subcategory

    async def _get_product(self, product_id: int, session: AsyncSession) -> ProductDTO:
        product = await self.products.get_by_id(product_id, session)
        if product is None:
            raise ProductNotFoundException(product_id)
        return product
