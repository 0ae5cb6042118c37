"""
Unit Tests: TransactionManager

Tests for utils/transaction_manager.py covering:
- atomic_transaction() commit and rollback
- Lock errors surface as retryable TransactionLockTimeout
- with_retry() only retries lock timeouts
- Real contention between two handles on one SQLite file: writers time out,
  readers keep working, a read blocked outright is retryable
"""

import aiosqlite
import pytest
import pytest_asyncio
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError

from db import Database
from exceptions import DuplicateNameException
from models.category import CategoryWriteDTO
from repositories.category import CategoryRepository
from services.cart import CartService
from services.catalog import CatalogService
from utils.error_handler import handle_service_error
from utils.transaction_manager import TransactionManager, TransactionLockTimeout, is_lock_error


class TestAtomicTransaction:

    @pytest.mark.asyncio
    async def test_commits_on_success(self, database):
        async with TransactionManager.atomic_transaction(database, "test_commit") as session:
            await CategoryRepository.create(CategoryWriteDTO(name="Books"), session)

        async with database.get_db_session() as session:
            assert await CategoryRepository.get_by_name("Books", session) is not None

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self, database):
        with pytest.raises(ValueError):
            async with TransactionManager.atomic_transaction(database, "test_rollback") as session:
                await CategoryRepository.create(CategoryWriteDTO(name="Books"), session)
                raise ValueError("boom")

        async with database.get_db_session() as session:
            assert await CategoryRepository.get_by_name("Books", session) is None

    @pytest.mark.asyncio
    async def test_lock_error_becomes_transaction_timeout(self, database):
        with pytest.raises(TransactionLockTimeout) as exc_info:
            async with TransactionManager.atomic_transaction(database, "test_lock", timeout=3):
                raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        assert exc_info.value.retryable is True
        assert exc_info.value.http_status == 503
        assert exc_info.value.details == {'operation': 'test_lock', 'timeout': 3}

    def test_is_lock_error(self):
        assert is_lock_error(OperationalError("SELECT 1", {}, Exception("database is locked")))
        assert not is_lock_error(OperationalError("SELECT 1", {}, Exception("no such table: x")))
        assert not is_lock_error(RuntimeError("database is locked"))


class TestWithRetry:

    @pytest.mark.asyncio
    async def test_retries_lock_timeouts_until_success(self):
        calls = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransactionLockTimeout("flaky", 1)
            return "done"

        assert await flaky() == "done"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []

        @TransactionManager.with_retry(max_retries=2, delay_base=0.001)
        async def always_locked():
            calls.append(1)
            raise TransactionLockTimeout("always_locked", 1)

        with pytest.raises(TransactionLockTimeout):
            await always_locked()
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_domain_errors_are_not_retried(self):
        calls = []

        @TransactionManager.with_retry(max_retries=3, delay_base=0.001)
        async def duplicate():
            calls.append(1)
            raise DuplicateNameException("Category", "Books")

        with pytest.raises(DuplicateNameException):
            await duplicate()
        assert len(calls) == 1


@pytest_asyncio.fixture
async def contended_database(file_database):
    """Second handle on the same SQLite file with a one second busy timeout."""
    database = Database(file_database.url, echo=False, timeout=1)
    database.init()

    yield database

    await database.dispose()


class TestLockContention:

    @pytest.mark.asyncio
    async def test_writer_times_out_while_readers_proceed(self, file_database, contended_database, asset_storage):
        await CatalogService(file_database, asset_storage=asset_storage).create_category("Electronics")
        catalog = CatalogService(contended_database, asset_storage=asset_storage)
        cart = CartService(contended_database)

        async with TransactionManager.atomic_transaction(file_database, "hold_write_lock") as session:
            await CategoryRepository.create(CategoryWriteDTO(name="Books"), session)

            with pytest.raises(TransactionLockTimeout) as exc_info:
                await catalog.create_category("Garden")
            assert await cart.get_cart(1) == []
            assert [category.name for category in await catalog.list_categories()] == ["Electronics"]

        assert exc_info.value.details == {'operation': 'create_category', 'timeout': 1}
        assert [category.name for category in await catalog.list_categories()] == ["Books", "Electronics"]

    @pytest.mark.asyncio
    async def test_blocked_read_is_retryable(self, file_database, contended_database):
        cart = CartService(contended_database)

        async with aiosqlite.connect(make_url(file_database.url).database, isolation_level=None) as conn:
            await conn.execute("BEGIN EXCLUSIVE")
            try:
                with pytest.raises(TransactionLockTimeout) as exc_info:
                    await cart.get_cart(1)
            finally:
                await conn.execute("ROLLBACK")

        status, payload = handle_service_error(exc_info.value)
        assert status == 503
        assert payload['retryable'] is True
        assert exc_info.value.details['operation'] == "get_cart"
        assert await cart.get_cart(1) == []
