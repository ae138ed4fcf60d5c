"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import AsyncMock, Mock
from bson import ObjectId
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("IMAGES_BASE_URL", "https://cdn.test")
os.environ.setdefault("LOG_FORMAT", "text")

from src.models.account import Account
from src.services.image_variants import ImageVariantPipeline
from tests.utils.factories import create_account_data


@pytest.fixture
def mock_store():
    """Document store double; every method is an AsyncMock."""
    store = Mock()
    store.aggregate = AsyncMock(return_value=[])
    store.find = AsyncMock(return_value=[])
    store.find_one = AsyncMock(return_value=None)
    store.insert_one = AsyncMock(side_effect=lambda collection, document: ObjectId())
    store.update_one = AsyncMock(return_value=None)
    store.delete_one = AsyncMock(return_value=1)
    store.ping = AsyncMock(return_value=None)
    store.close = AsyncMock(return_value=None)
    return store


@pytest.fixture
def mock_blob_store():
    """Blob store double that records uploaded keys."""
    blob_store = Mock()
    blob_store.uploaded = []

    async def put_many(variants):
        keys = [variant.key for variant in variants]
        blob_store.uploaded.extend(keys)
        return keys

    blob_store.put_many = AsyncMock(side_effect=put_many)
    blob_store.delete = AsyncMock(return_value=None)
    return blob_store


@pytest.fixture
def key_factory():
    """Deterministic base keys: <prefix>-KEY1, <prefix>-KEY2, ..."""
    counter = {"value": 0}

    def factory(prefix: str) -> str:
        counter["value"] += 1
        return f"{prefix}-KEY{counter['value']}"

    return factory


@pytest.fixture
def pipeline(mock_blob_store, key_factory):
    return ImageVariantPipeline(
        mock_blob_store,
        quality=80,
        max_image_size=5_000_000,
        max_concurrency=2,
        key_factory=key_factory,
    )


@pytest.fixture
def owner_data():
    return create_account_data()


@pytest.fixture
def owner(owner_data):
    return Account.model_validate(owner_data)


@pytest.fixture
def stranger():
    return Account.model_validate(create_account_data())


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time
