"""
Integration tests for the process-wide database registry.
"""

import tempfile

import pytest
import pytest_asyncio

from gigboard.config import StorageConfig
from gigboard.errors import InvalidArgumentError
from gigboard.store.index import IndexSpec
from gigboard.store.registry import (
    close_all,
    close_database,
    get_database,
    open_database,
    registered_names,
)


class TestDatabaseRegistry:
    """Tests for open_database/close_database."""

    @pytest.fixture
    def config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            yield StorageConfig(data_dir=tmpdir, wal_mode=False)

    @pytest_asyncio.fixture(autouse=True)
    async def clean_registry(self):
        yield
        await close_all()

    @pytest.mark.asyncio
    async def test_same_name_same_instance(self, config):
        first = await open_database("jobs", config)
        second = await open_database("jobs")

        assert first is second
        assert first.is_open
        assert registered_names() == ["jobs"]

    @pytest.mark.asyncio
    async def test_get_database_does_not_open(self, config):
        db = get_database("lazy", config)
        assert db.is_open is False

        assert await open_database("lazy") is db
        assert db.is_open

    @pytest.mark.asyncio
    async def test_close_database(self, config):
        db = await open_database("jobs", config)
        db.register_index(IndexSpec("createdAt"))
        subscription = await db.subscribe("createdAt", lambda result: None)

        assert await close_database("jobs") is True
        assert await close_database("jobs") is False
        assert subscription.active is False
        assert registered_names() == []

    @pytest.mark.asyncio
    async def test_reopen_after_close_sees_data(self, config):
        db = await open_database("jobs", config)
        result = await db.put({"title": "Persist me", "createdAt": 5})
        await close_database("jobs")

        reopened = await open_database("jobs", config)
        reopened.register_index(IndexSpec("createdAt"))

        assert reopened is not db
        assert (await reopened.get(result.id))["title"] == "Persist me"
        assert [row.id for row in reopened.query("createdAt")] == [result.id]

    @pytest.mark.asyncio
    async def test_names_sharing_a_file_are_rejected(self, config):
        """Every registered name owns its own database file."""
        db = await open_database("jobs", config)

        with pytest.raises(InvalidArgumentError):
            await open_database("jobs!", config)
        with pytest.raises(InvalidArgumentError):
            get_database("../jobs", config)

        assert registered_names() == ["jobs"]
        assert (await open_database("jobs")) is db

    @pytest.mark.asyncio
    async def test_distinct_names_use_distinct_files(self, config):
        first = await open_database("jobs-a", config)
        second = await open_database("jobs_a", config)

        await first.put({"_id": "a", "createdAt": 1})

        assert first.store.db_path != second.store.db_path
        assert await second.all_docs() == []

    @pytest.mark.asyncio
    async def test_close_all(self, config):
        await open_database("a", config)
        await open_database("b", config)

        await close_all()

        assert registered_names() == []
