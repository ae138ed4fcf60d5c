"""Account avatar uploads through the image variant pipeline."""

from typing import Optional

from src.models.account import Account
from src.models.image import UploadedImage, avatar_profile
from src.services.image_presentation import public_url
from src.services.image_variants import ImageVariantPipeline
from src.services.mongo_client import ACCOUNTS_COLLECTION, to_object_id
from src.utils.errors import BlobStoreError, NotFoundError
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class AvatarService:
    """Replace an account's avatar with a freshly processed upload."""

    def __init__(self, store, blob_store, pipeline: ImageVariantPipeline, base_url: Optional[str] = None):
        self.store = store
        self.blob_store = blob_store
        self.pipeline = pipeline
        self.base_url = base_url

    async def upload_avatar(self, account: Account, image: UploadedImage) -> Account:
        variant_set = await self.pipeline.process_image(image, avatar_profile(account.id))
        avatar_url = public_url(variant_set.names[0], self.base_url)

        updated = await self.store.update_one(
            ACCOUNTS_COLLECTION,
            {"_id": to_object_id(account.id)},
            {"$set": {"avatarNames": variant_set.names, "avatarUrl": avatar_url}},
        )
        if updated is None:
            await self.blob_store.delete(*variant_set.names)
            raise NotFoundError("Account not found", details={"accountId": account.id})

        previous = [key for key in account.avatar_names if key not in variant_set.names]
        if previous:
            try:
                await self.blob_store.delete(*previous)
            except BlobStoreError as e:
                # The new avatar is already live; the old keys are only orphaned
                logger.error(
                    "Failed to remove previous avatar",
                    account_id=account.id,
                    keys=previous,
                    error=str(e),
                    exc_info=True
                )

        logger.info("Avatar updated", account_id=account.id, key=variant_set.names[0])
        return Account.model_validate(updated)
