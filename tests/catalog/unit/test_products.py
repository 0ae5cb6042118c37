"""
Unit Tests: Product management

Tests for services/catalog.py covering:
- create_product() - parent checks, category/subcategory consistency, field validation
- update_product() / set_product_active()
- delete_product() - cart cleanup, asset deletion, order history protection
- product_image_url()
"""

from decimal import Decimal

import pytest

from exceptions import (
    CategoryNotFoundException,
    SubcategoryNotFoundException,
    ProductNotFoundException,
    InactiveParentException,
    CategoryMismatchException,
    OperationNotAllowedException,
    ValidationException,
)
from models.product import ProductDTO
from services.catalog import CatalogService


class TestCreateProduct:

    @pytest.mark.asyncio
    async def test_create_product(self, catalog_service, catalog):
        product = await catalog_service.create_product(
            "  Gizmo  ", "19.99", catalog.category.id, catalog.subcategory.id,
            description="Pocket sized", stock=4, image_name="GIZMO.PNG"
        )

        assert product.name == "Gizmo"
        assert product.price == Decimal("19.99")
        assert product.stock == 4
        assert product.image_name == "GIZMO.PNG"
        assert product.active is True

    @pytest.mark.asyncio
    async def test_stock_defaults_to_zero(self, catalog_service, catalog):
        product = await catalog_service.create_product("Gizmo", Decimal("1.00"),
                                                       catalog.category.id, catalog.subcategory.id)
        assert product.stock == 0

    @pytest.mark.asyncio
    async def test_missing_category(self, catalog_service, catalog):
        with pytest.raises(CategoryNotFoundException):
            await catalog_service.create_product("Gizmo", Decimal("1.00"), 999, catalog.subcategory.id)

    @pytest.mark.asyncio
    async def test_missing_subcategory(self, catalog_service, catalog):
        with pytest.raises(SubcategoryNotFoundException):
            await catalog_service.create_product("Gizmo", Decimal("1.00"), catalog.category.id, 999)

    @pytest.mark.asyncio
    async def test_subcategory_from_other_category(self, catalog_service, catalog):
        toys = await catalog_service.create_category("Toys")

        with pytest.raises(CategoryMismatchException) as exc_info:
            await catalog_service.create_product("Gizmo", Decimal("1.00"), toys.id, catalog.subcategory.id)

        assert exc_info.value.actual_category_id == catalog.category.id
        assert exc_info.value.kind == "CategoryMismatch"

    @pytest.mark.asyncio
    async def test_inactive_subcategory(self, catalog_service, catalog):
        await catalog_service.set_subcategory_active(catalog.subcategory.id, False)

        with pytest.raises(InactiveParentException) as exc_info:
            await catalog_service.create_product("Gizmo", Decimal("1.00"),
                                                 catalog.category.id, catalog.subcategory.id)

        assert exc_info.value.parent == "Subcategory"

    @pytest.mark.asyncio
    async def test_inactive_category(self, catalog_service, catalog):
        await catalog_service.set_category_active(catalog.category.id, False)

        with pytest.raises(InactiveParentException) as exc_info:
            await catalog_service.create_product("Gizmo", Decimal("1.00"),
                                                 catalog.category.id, catalog.subcategory.id)

        assert exc_info.value.parent == "Category"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field, overrides", [
        ("name", {"name": "G"}),
        ("price", {"price": Decimal("-0.01")}),
        ("stock", {"stock": -1}),
        ("image_name", {"image_name": "photo.bmp"}),
        ("image_name", {"image_name": "no_extension"}),
    ])
    async def test_invalid_fields(self, catalog_service, catalog, field, overrides):
        values = {"name": "Gizmo", "price": Decimal("1.00"), "stock": 0, "image_name": None}
        values.update(overrides)

        with pytest.raises(ValidationException) as exc_info:
            await catalog_service.create_product(values["name"], values["price"],
                                                 catalog.category.id, catalog.subcategory.id,
                                                 stock=values["stock"], image_name=values["image_name"])

        assert exc_info.value.field == field
        assert await catalog_service.count_products(catalog.category.id) == 2


class TestUpdateProduct:

    @pytest.mark.asyncio
    async def test_partial_update(self, catalog_service, catalog):
        product = await catalog_service.update_product(catalog.product_b.id, price="7.50", description="New")

        assert product.price == Decimal("7.50")
        assert product.description == "New"
        assert product.name == "Widget B"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, catalog_service, catalog):
        with pytest.raises(ValidationException):
            await catalog_service.update_product(catalog.product_b.id, stock=100)

    @pytest.mark.asyncio
    async def test_replacing_image_deletes_old_asset(self, catalog_service, catalog, asset_storage):
        product = await catalog_service.update_product(catalog.product_a.id, image_name="a2.jpg")

        assert product.image_name == "a2.jpg"
        assert asset_storage.deleted == ["a.png"]

    @pytest.mark.asyncio
    async def test_missing_product(self, catalog_service):
        with pytest.raises(ProductNotFoundException):
            await catalog_service.update_product(404, name="Ghost")


class TestSetProductActive:

    @pytest.mark.asyncio
    async def test_deactivate_and_reactivate(self, catalog_service, catalog):
        product = await catalog_service.set_product_active(catalog.product_a.id, False)
        assert product.active is False

        product = await catalog_service.set_product_active(catalog.product_a.id, True)
        assert product.active is True

    @pytest.mark.asyncio
    async def test_reactivation_requires_active_parents(self, catalog_service, catalog):
        await catalog_service.set_subcategory_active(catalog.subcategory.id, False)

        with pytest.raises(InactiveParentException):
            await catalog_service.set_product_active(catalog.product_a.id, True)

        assert (await catalog_service.get_product(catalog.product_a.id)).active is False


class TestDeleteProduct:

    @pytest.mark.asyncio
    async def test_delete_removes_cart_rows_and_asset(self, catalog_service, cart_service, catalog, asset_storage):
        await cart_service.add_item(1, catalog.product_a.id, 2)
        await cart_service.add_item(2, catalog.product_a.id, 1)

        deleted = await catalog_service.delete_product(catalog.product_a.id)

        assert deleted.id == catalog.product_a.id
        assert asset_storage.deleted == ["a.png"]
        assert await cart_service.get_cart(1) == []
        assert await cart_service.get_cart(2) == []
        with pytest.raises(ProductNotFoundException):
            await catalog_service.get_product(catalog.product_a.id)

    @pytest.mark.asyncio
    async def test_product_without_image_skips_asset_storage(self, catalog_service, catalog, asset_storage):
        await catalog_service.delete_product(catalog.product_b.id)

        assert asset_storage.deleted == []

    @pytest.mark.asyncio
    async def test_asset_failure_does_not_fail_delete(self, database, catalog, failing_asset_storage, caplog):
        service = CatalogService(database, asset_storage=failing_asset_storage)

        await service.delete_product(catalog.product_a.id)

        with pytest.raises(ProductNotFoundException):
            await service.get_product(catalog.product_a.id)
        assert "Failed to delete asset a.png" in caplog.text

    @pytest.mark.asyncio
    async def test_ordered_product_cannot_be_deleted(self, catalog_service, cart_service, order_service, catalog):
        await cart_service.add_item(1, catalog.product_a.id, 1)
        await order_service.create_from_cart(1, "1 Main Street", "555-0100")

        with pytest.raises(OperationNotAllowedException) as exc_info:
            await catalog_service.delete_product(catalog.product_a.id)

        assert exc_info.value.http_status == 409
        assert (await catalog_service.get_product(catalog.product_a.id)).id == catalog.product_a.id

    @pytest.mark.asyncio
    async def test_missing_product(self, catalog_service):
        with pytest.raises(ProductNotFoundException):
            await catalog_service.delete_product(404)


class TestProductImageUrl:

    def test_url_for_product_with_image(self):
        product = ProductDTO(id=1, image_name="a.png")
        assert CatalogService.product_image_url(product, "https://shop.example/") == "https://shop.example/uploads/a.png"

    def test_default_base_url(self):
        product = ProductDTO(id=1, image_name="a.png")
        assert CatalogService.product_image_url(product) == "http://localhost:3000/uploads/a.png"

    def test_no_image(self):
        assert CatalogService.product_image_url(ProductDTO(id=1)) is None
