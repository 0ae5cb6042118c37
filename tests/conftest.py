"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import os
import sys
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio

# Set environment before any app module reads config
os.environ.setdefault('RUNTIME_ENVIRONMENT', 'TEST')
os.environ.setdefault('LOG_MASK_SECRETS', 'true')

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from db import Database
from services.catalog import CatalogService
from services.cart import CartService
from services.inventory import InventoryService
from services.order import OrderService


class RecordingAssetStorage:
    """Asset storage double that remembers which assets were deleted."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.deleted: list[str] = []

    async def delete(self, asset_name: str) -> bool:
        if self.fail:
            raise OSError("uploads folder is not writable")
        self.deleted.append(asset_name)
        return True


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def database():
    """In-memory SQLite database with all tables created."""
    database = Database("sqlite+aiosqlite:///:memory:", echo=False, timeout=5)
    database.init()
    await database.create_db_and_tables()

    yield database

    await database.dispose()


@pytest_asyncio.fixture
async def file_database(tmp_path):
    """File backed SQLite database, needed when several connections run at once."""
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'data' / 'shop.db'}", echo=False, timeout=5)
    database.init()
    await database.create_db_and_tables()

    yield database

    await database.dispose()


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def asset_storage():
    return RecordingAssetStorage()


@pytest.fixture
def failing_asset_storage():
    return RecordingAssetStorage(fail=True)


@pytest.fixture
def catalog_service(database, asset_storage):
    return CatalogService(database, asset_storage=asset_storage)


@pytest.fixture
def inventory_service(database):
    return InventoryService(database)


@pytest.fixture
def cart_service(database, inventory_service):
    return CartService(database, inventory_service=inventory_service)


@pytest.fixture
def order_service(database, inventory_service):
    return OrderService(database, inventory_service=inventory_service)


# ============================================================================
# Seed Data
# ============================================================================

async def seed_catalog(catalog_service: CatalogService) -> SimpleNamespace:
    """
    One category with one subcategory and two products:
    - product_a: 10.00, stock 10, image a.png
    - product_b: 5.00, stock 5, no image
    """
    category = await catalog_service.create_category("Electronics", "Gadgets and parts")
    subcategory = await catalog_service.create_subcategory("Phones", category.id)
    product_a = await catalog_service.create_product("Widget A", Decimal("10.00"), category.id, subcategory.id,
                                                     stock=10, image_name="a.png")
    product_b = await catalog_service.create_product("Widget B", Decimal("5.00"), category.id, subcategory.id,
                                                     stock=5)
    return SimpleNamespace(category=category, subcategory=subcategory, product_a=product_a, product_b=product_b)


@pytest_asyncio.fixture
async def catalog(catalog_service):
    return await seed_catalog(catalog_service)
