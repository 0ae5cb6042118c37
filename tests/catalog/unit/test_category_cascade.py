"""
Unit Tests: Category and subcategory activation cascades

Tests for services/catalog.py covering:
- create_category() / create_subcategory() - uniqueness, name length, parent checks
- set_category_active() - cascade to subcategories and products, counts
- set_subcategory_active() - cascade to products
- Reactivation never cascades
- A failing cascade rolls back completely
"""

from decimal import Decimal

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from exceptions import (
    CategoryNotFoundException,
    SubcategoryNotFoundException,
    DuplicateNameException,
    InactiveParentException,
    ValidationException,
)
from repositories.category import CategoryRepository
from repositories.product import ProductRepository
from repositories.subcategory import SubcategoryRepository
from services.catalog import CatalogService


async def build_tree(catalog_service):
    """Category with two subcategories: Phones (2 products) and Tablets (1 product)."""
    category = await catalog_service.create_category("Electronics")
    phones = await catalog_service.create_subcategory("Phones", category.id)
    tablets = await catalog_service.create_subcategory("Tablets", category.id)
    await catalog_service.create_product("Phone X", Decimal("499.00"), category.id, phones.id, stock=3)
    await catalog_service.create_product("Phone Y", Decimal("299.00"), category.id, phones.id, stock=1)
    await catalog_service.create_product("Tab Z", Decimal("199.00"), category.id, tablets.id, stock=2)
    return category, phones, tablets


class TestCreateCategory:

    @pytest.mark.asyncio
    async def test_create_category_trims_name(self, catalog_service):
        category = await catalog_service.create_category("  Books  ", "Paper and ebooks")

        assert category.id is not None
        assert category.name == "Books"
        assert category.description == "Paper and ebooks"
        assert category.active is True

    @pytest.mark.asyncio
    async def test_duplicate_category_name_rejected(self, catalog_service):
        await catalog_service.create_category("Books")

        with pytest.raises(DuplicateNameException) as exc_info:
            await catalog_service.create_category("Books")

        assert exc_info.value.kind == "DuplicateName"
        assert exc_info.value.http_status == 400

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["B", "   B   ", "x" * 101])
    async def test_category_name_length_validated(self, catalog_service, name):
        with pytest.raises(ValidationException) as exc_info:
            await catalog_service.create_category(name)

        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_update_category_rename_checks_uniqueness(self, catalog_service):
        books = await catalog_service.create_category("Books")
        await catalog_service.create_category("Music")

        with pytest.raises(DuplicateNameException):
            await catalog_service.update_category(books.id, name="Music")

        renamed = await catalog_service.update_category(books.id, name="Literature")
        assert renamed.name == "Literature"
        assert renamed.updated_at is not None

    @pytest.mark.asyncio
    async def test_update_conflict_on_commit_reports_stored_name(self, database, asset_storage):
        class RacingCategoryRepository(CategoryRepository):
            @staticmethod
            async def update(category_id, values, session):
                raise IntegrityError("UPDATE categories", {}, Exception("UNIQUE constraint failed: categories.name"))

        healthy = CatalogService(database, asset_storage=asset_storage)
        racing = CatalogService(database, asset_storage=asset_storage, category_repository=RacingCategoryRepository)
        books = await healthy.create_category("Books")

        with pytest.raises(DuplicateNameException) as exc_info:
            await racing.update_category(books.id, description="Paper only")

        assert exc_info.value.name == "Books"
        assert "None" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_subcategory_update_conflict_reports_stored_name(self, database, asset_storage):
        class RacingSubcategoryRepository(SubcategoryRepository):
            @staticmethod
            async def update(subcategory_id, values, session):
                raise IntegrityError("UPDATE subcategories", {}, Exception("UNIQUE constraint failed"))

        healthy = CatalogService(database, asset_storage=asset_storage)
        racing = CatalogService(database, asset_storage=asset_storage,
                                subcategory_repository=RacingSubcategoryRepository)
        category = await healthy.create_category("Books")
        novels = await healthy.create_subcategory("Novels", category.id)

        with pytest.raises(DuplicateNameException) as exc_info:
            await racing.update_subcategory(novels.id, description="Long fiction")

        assert exc_info.value.name == "Novels"
        assert exc_info.value.details['scope_id'] == category.id


class TestCreateSubcategory:

    @pytest.mark.asyncio
    async def test_missing_category(self, catalog_service):
        with pytest.raises(CategoryNotFoundException) as exc_info:
            await catalog_service.create_subcategory("Phones", 999)

        assert exc_info.value.http_status == 404

    @pytest.mark.asyncio
    async def test_inactive_category(self, catalog_service):
        category = await catalog_service.create_category("Electronics")
        await catalog_service.set_category_active(category.id, False)

        with pytest.raises(InactiveParentException) as exc_info:
            await catalog_service.create_subcategory("Phones", category.id)

        assert exc_info.value.kind == "InactiveParent"

    @pytest.mark.asyncio
    async def test_name_unique_per_category(self, catalog_service):
        electronics = await catalog_service.create_category("Electronics")
        toys = await catalog_service.create_category("Toys")
        await catalog_service.create_subcategory("Robots", electronics.id)

        with pytest.raises(DuplicateNameException):
            await catalog_service.create_subcategory("Robots", electronics.id)

        # Same name under another category is fine
        robots = await catalog_service.create_subcategory("Robots", toys.id)
        assert robots.category_id == toys.id


class TestCategoryCascade:

    @pytest.mark.asyncio
    async def test_deactivation_cascades_to_subcategories_and_products(self, catalog_service):
        category, phones, tablets = await build_tree(catalog_service)

        result = await catalog_service.set_category_active(category.id, False)

        assert result.subcategories_affected == 2
        assert result.products_affected == 3
        assert (await catalog_service.get_category(category.id)).active is False
        assert all(not s.active for s in await catalog_service.list_subcategories(category.id))
        assert all(not p.active for p in await catalog_service.list_products(category_id=category.id))

    @pytest.mark.asyncio
    async def test_counts_only_rows_that_changed(self, catalog_service):
        category, phones, tablets = await build_tree(catalog_service)
        await catalog_service.set_subcategory_active(tablets.id, False)

        result = await catalog_service.set_category_active(category.id, False)

        assert result.subcategories_affected == 1
        assert result.products_affected == 2

    @pytest.mark.asyncio
    async def test_reactivation_does_not_cascade(self, catalog_service):
        category, phones, tablets = await build_tree(catalog_service)
        await catalog_service.set_category_active(category.id, False)

        result = await catalog_service.set_category_active(category.id, True)

        assert result.subcategories_affected == 0
        assert result.products_affected == 0
        assert (await catalog_service.get_category(category.id)).active is True
        assert await catalog_service.list_subcategories(category.id, active=True) == []
        assert await catalog_service.list_products(category_id=category.id, active=True) == []

    @pytest.mark.asyncio
    async def test_setting_current_value_is_noop(self, catalog_service):
        category, _, _ = await build_tree(catalog_service)

        result = await catalog_service.set_category_active(category.id, True)

        assert (result.subcategories_affected, result.products_affected) == (0, 0)
        assert len(await catalog_service.list_products(category_id=category.id, active=True)) == 3

    @pytest.mark.asyncio
    async def test_missing_category(self, catalog_service):
        with pytest.raises(CategoryNotFoundException):
            await catalog_service.set_category_active(42, False)

    @pytest.mark.asyncio
    async def test_toggle_category(self, catalog_service):
        category, _, _ = await build_tree(catalog_service)

        result = await catalog_service.toggle_category(category.id)
        assert result.subcategories_affected == 2
        assert (await catalog_service.get_category(category.id)).active is False

        await catalog_service.toggle_category(category.id)
        assert (await catalog_service.get_category(category.id)).active is True

    @pytest.mark.asyncio
    async def test_concurrent_toggles_flip_twice(self, file_database, asset_storage):
        first = CatalogService(file_database, asset_storage=asset_storage)
        second = CatalogService(file_database, asset_storage=asset_storage)
        category, _, _ = await build_tree(first)

        results = await asyncio.gather(first.toggle_category(category.id), second.toggle_category(category.id))

        assert (await first.get_category(category.id)).active is True
        assert sorted(result.subcategories_affected for result in results) == [0, 2]

    @pytest.mark.asyncio
    async def test_failed_cascade_rolls_back(self, database, asset_storage):
        class BrokenProductRepository(ProductRepository):
            @staticmethod
            async def deactivate_by_category_id(category_id, session):
                raise RuntimeError("disk full")

        healthy = CatalogService(database, asset_storage=asset_storage)
        broken = CatalogService(database, asset_storage=asset_storage,
                                product_repository=BrokenProductRepository)
        category, phones, tablets = await build_tree(healthy)

        with pytest.raises(RuntimeError):
            await broken.set_category_active(category.id, False)

        assert (await healthy.get_category(category.id)).active is True
        assert len(await healthy.list_subcategories(category.id, active=True)) == 2
        assert len(await healthy.list_products(category_id=category.id, active=True)) == 3


class TestSubcategoryCascade:

    @pytest.mark.asyncio
    async def test_deactivation_cascades_to_products(self, catalog_service):
        category, phones, tablets = await build_tree(catalog_service)

        result = await catalog_service.set_subcategory_active(phones.id, False)

        assert result.subcategories_affected == 1
        assert result.products_affected == 2
        assert await catalog_service.list_products(subcategory_id=phones.id, active=True) == []
        # Sibling subcategory untouched
        assert len(await catalog_service.list_products(subcategory_id=tablets.id, active=True)) == 1

    @pytest.mark.asyncio
    async def test_reactivation_under_inactive_category_rejected(self, catalog_service):
        category, phones, _ = await build_tree(catalog_service)
        await catalog_service.set_category_active(category.id, False)

        with pytest.raises(InactiveParentException):
            await catalog_service.set_subcategory_active(phones.id, True)

    @pytest.mark.asyncio
    async def test_reactivation_leaves_products_inactive(self, catalog_service):
        category, phones, _ = await build_tree(catalog_service)
        await catalog_service.set_subcategory_active(phones.id, False)

        await catalog_service.set_subcategory_active(phones.id, True)

        assert (await catalog_service.get_subcategory(phones.id)).active is True
        assert await catalog_service.list_products(subcategory_id=phones.id, active=True) == []

    @pytest.mark.asyncio
    async def test_missing_subcategory(self, catalog_service):
        with pytest.raises(SubcategoryNotFoundException):
            await catalog_service.set_subcategory_active(7, False)


class TestCounters:

    @pytest.mark.asyncio
    async def test_count_active_subcategories_ignores_inactive(self, catalog_service):
        category, phones, tablets = await build_tree(catalog_service)
        await catalog_service.set_subcategory_active(tablets.id, False)

        assert await catalog_service.count_active_subcategories(category.id) == 1

    @pytest.mark.asyncio
    async def test_category_stats(self, catalog_service):
        category, phones, tablets = await build_tree(catalog_service)
        await catalog_service.set_subcategory_active(tablets.id, False)

        stats = await catalog_service.category_stats(category.id)

        assert stats.active_subcategories == 1
        assert stats.total_subcategories == 2
        assert stats.total_products == 3
        assert stats.active_products == 2
        assert await catalog_service.count_products(category.id) == 3
        assert await catalog_service.count_subcategory_products(phones.id) == 2

    @pytest.mark.asyncio
    async def test_list_categories_ordered_by_name(self, catalog_service):
        await catalog_service.create_category("Toys")
        books = await catalog_service.create_category("Books")
        await catalog_service.create_category("Music")
        await catalog_service.set_category_active(books.id, False)

        assert [c.name for c in await catalog_service.list_categories()] == ["Books", "Music", "Toys"]
        assert [c.name for c in await catalog_service.list_categories(active=True)] == ["Music", "Toys"]
