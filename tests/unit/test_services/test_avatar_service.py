"""Tests for avatar uploads."""

import pytest
from unittest.mock import AsyncMock

from bson import ObjectId

from src.models.account import Account
from src.services.avatar_service import AvatarService
from src.services.mongo_client import ACCOUNTS_COLLECTION
from src.utils.errors import BlobStoreError, NotFoundError
from tests.utils.factories import create_account_data
from tests.utils.helpers import make_upload


@pytest.fixture
def avatars(mock_store, mock_blob_store, pipeline):
    return AvatarService(mock_store, mock_blob_store, pipeline, base_url="https://cdn.test")


def stored_after(update_args) -> dict:
    _, query, update = update_args
    return create_account_data(account_id=query["_id"], **update["$set"])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upload_avatar_replaces_url_and_old_keys(avatars, mock_store, mock_blob_store):
    account = Account.model_validate(create_account_data(
        avatarNames=["avatar-old-500"],
        avatarUrl="https://cdn.test/avatar-old-500",
    ))
    mock_store.update_one = AsyncMock(side_effect=lambda *args: stored_after(args))

    updated = await avatars.upload_avatar(account, make_upload(600, 600))

    expected_key = f"avatar-{account.id}-KEY1-500"
    collection, query, update = mock_store.update_one.await_args.args
    assert collection == ACCOUNTS_COLLECTION
    assert query == {"_id": ObjectId(account.id)}
    assert update["$set"] == {"avatarNames": [expected_key], "avatarUrl": f"https://cdn.test/{expected_key}"}
    mock_blob_store.delete.assert_awaited_once_with("avatar-old-500")
    assert updated.avatar_url == f"https://cdn.test/{expected_key}"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_account_removes_new_upload(avatars, mock_store, mock_blob_store, owner):
    mock_store.update_one = AsyncMock(return_value=None)

    with pytest.raises(NotFoundError):
        await avatars.upload_avatar(owner, make_upload(600, 600))

    mock_blob_store.delete.assert_awaited_once_with(f"avatar-{owner.id}-KEY1-500")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_old_avatar_cleanup_failure_keeps_new_avatar(avatars, mock_store, mock_blob_store):
    account = Account.model_validate(create_account_data(avatarNames=["avatar-old-500"]))
    mock_store.update_one = AsyncMock(side_effect=lambda *args: stored_after(args))
    mock_blob_store.delete = AsyncMock(side_effect=BlobStoreError("down"))

    updated = await avatars.upload_avatar(account, make_upload(600, 600))

    assert updated.avatar_names == [f"avatar-{account.id}-KEY1-500"]
