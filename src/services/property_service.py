"""Property service - owner operations over properties and their images."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, Optional, Union
from pydantic import ValidationError as PydanticValidationError

from src.models.account import Account
from src.models.image import PROPERTY_IMAGE_PROFILE, UploadedImage
from src.models.property import (
    HOUSE_ONLY_FIELDS,
    IMMUTABLE_FIELDS,
    PropertyInput,
    PropertyStatus,
    PropertyType,
    Purpose,
)
from src.services.geofence import inside_guinea
from src.services.image_jobs import ImageJob, ImageJobQueue
from src.services.image_presentation import present_property
from src.services.image_variants import ImageVariantPipeline, check_image_cap
from src.services.messages import (
    LOCATION_INVALID_ERROR_MESSAGE,
    NO_LOCATION_ERROR_MESSAGE,
    NOT_PERMITTED_ERROR_MESSAGE,
    PROPERTY_NOTFOUND_ERROR_MESSAGE,
    PROPERTY_VALIDATION_ERROR_MESSAGE,
)
from src.services.mongo_client import ACCOUNTS_COLLECTION, PROPERTIES_COLLECTION, to_object_id
from src.services.query_stages import build_pipeline, owner_lookup_stage
from src.utils.config import AppConfig
from src.utils.errors import (
    BlobStoreError,
    InfrastructureError,
    NotFoundError,
    NotPermittedError,
    ValidationError,
)
from src.utils.logging import get_structured_logger, log_timing, timed

logger = get_structured_logger(__name__)

_ALL_STATUSES = frozenset(PropertyStatus)

STATUS_TRANSITIONS = {
    PropertyStatus.LISTED: _ALL_STATUSES,
    PropertyStatus.PENDING: _ALL_STATUSES,
    PropertyStatus.UNLISTED: frozenset({PropertyStatus.UNLISTED, PropertyStatus.LISTED}),
    PropertyStatus.SOLD: frozenset({PropertyStatus.SOLD, PropertyStatus.LISTED}),
    PropertyStatus.RENTED: frozenset({PropertyStatus.RENTED, PropertyStatus.LISTED}),
}

STATUS_TRANSITION_ERRORS = {
    PropertyStatus.LISTED: "This property already listed!",
    PropertyStatus.UNLISTED: "You can't unlist this property now",
    PropertyStatus.PENDING: "There are some errors in your data",
    PropertyStatus.SOLD: "This property is not available for sale",
    PropertyStatus.RENTED: "This property is not available for rent",
}

# Promotion periods are counted in 360-day years
_PROMO_YEAR = timedelta(days=360)


def strip_immutable(payload: Optional[dict]) -> dict:
    """Drop every system-managed field from a client payload."""
    return {key: value for key, value in (payload or {}).items() if key not in IMMUTABLE_FIELDS}


def promo_running(now: datetime, start_ms: Optional[int] = None, period_years: Optional[int] = None) -> bool:
    """True while the free listing promotion is running."""
    start_ms = AppConfig.PROMO_START_DATE if start_ms is None else start_ms
    period_years = AppConfig.PROMO_PERIOD if period_years is None else period_years
    if not start_ms and not period_years:
        return False

    start = datetime.fromtimestamp(start_ms / 1000, tz=timezone.utc)
    return start + period_years * _PROMO_YEAR > now


def validate_property(payload: dict) -> PropertyInput:
    """Validate a client payload, turning pydantic errors into a 400."""
    try:
        return PropertyInput.model_validate(payload)
    except PydanticValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
            }
            for error in e.errors(include_url=False)
        ]
        raise ValidationError(PROPERTY_VALIDATION_ERROR_MESSAGE, details={"errors": errors})


def variant_keys(image_sets: Optional[Iterable[dict]]) -> list[str]:
    """Every stored key of every variant set, without duplicates."""
    keys: list[str] = []
    for image_set in image_sets or []:
        for key in [*(image_set.get("names") or []), image_set.get("sourceName")]:
            if key and key not in keys:
                keys.append(key)
    return keys


class PropertyService:
    """Create, read, update and delete properties on behalf of their owners."""

    def __init__(
        self,
        store,
        blob_store,
        pipeline: ImageVariantPipeline,
        job_queue: Optional[ImageJobQueue] = None,
        base_url: Optional[str] = None,
        geofence_path: Optional[Union[str, Path]] = None,
        stop_on_image_error: bool = False,
    ):
        self.store = store
        self.blob_store = blob_store
        self.pipeline = pipeline
        self.job_queue = job_queue or ImageJobQueue(self.process_image_job)
        self.base_url = base_url
        self.geofence_path = geofence_path
        self.stop_on_image_error = stop_on_image_error

    def _check_location(self, location: Any) -> None:
        if not location:
            raise ValidationError(NO_LOCATION_ERROR_MESSAGE)
        coordinates = location.get("coordinates") if isinstance(location, dict) else None
        if not inside_guinea(coordinates, self.geofence_path):
            raise ValidationError(LOCATION_INVALID_ERROR_MESSAGE, details={"coordinates": coordinates})

    async def _get_property(self, property_id: Any) -> dict:
        document = await self.store.find_one(PROPERTIES_COLLECTION, {"_id": to_object_id(property_id)})
        if document is None:
            raise NotFoundError(PROPERTY_NOTFOUND_ERROR_MESSAGE, details={"propertyId": str(property_id)})
        return document

    async def _get_owned_property(self, account: Account, property_id: Any) -> dict:
        document = await self._get_property(property_id)
        if str(document.get("ownerId")) != str(account.id):
            logger.warning(
                "Property access denied",
                property_id=str(property_id),
                account_id=account.id
            )
            raise NotPermittedError(NOT_PERMITTED_ERROR_MESSAGE)
        return document

    async def create_property(self, account: Account, payload: dict, now: Optional[datetime] = None) -> dict:
        """Validate and insert a new property owned by ``account``."""
        payload = strip_immutable(payload)
        self._check_location(payload.get("location"))
        property_input = validate_property(payload)

        now = now or datetime.now(timezone.utc)
        owner_id = to_object_id(account.id)

        document = property_input.to_document()
        document.update({
            "ownerId": owner_id,
            "status": PropertyStatus.UNLISTED.value,
            "imagesNames": [],
            "createdAt": now,
            "updatedAt": now,
        })
        if promo_running(now):
            document.update({
                "status": PropertyStatus.LISTED.value,
                "publishDate": now,
                "statusChangeDate": now,
            })

        document["_id"] = await self.store.insert_one(PROPERTIES_COLLECTION, document)
        await self.store.update_one(
            ACCOUNTS_COLLECTION,
            {"_id": owner_id},
            {"$inc": {"listingCount": 1, "totalListing": 1}},
        )

        logger.info(
            "Property created",
            property_id=str(document["_id"]),
            owner_id=account.id,
            property_type=property_input.type.value,
            status=document["status"]
        )
        return present_property(document, self.base_url)

    @timed("fetch_property", logger=logger)
    async def fetch_property(self, property_id: Any) -> dict:
        """One property with its owner and images."""
        documents = await self.store.aggregate(
            PROPERTIES_COLLECTION,
            build_pipeline({"$match": {"_id": to_object_id(property_id)}}, owner_lookup_stage(ACCOUNTS_COLLECTION)),
        )
        if not documents:
            raise NotFoundError(PROPERTY_NOTFOUND_ERROR_MESSAGE, details={"propertyId": str(property_id)})
        return present_property(documents[0], self.base_url)

    @timed("fetch_owner_properties", logger=logger)
    async def fetch_owner_properties(
        self,
        owner_id: Any,
        excluded_property_id: Optional[Any] = None,
        status: Optional[str] = None,
    ) -> list[dict]:
        """An owner's properties, newest first."""
        query: dict[str, Any] = {"ownerId": to_object_id(owner_id)}
        if excluded_property_id:
            query["_id"] = {"$ne": to_object_id(excluded_property_id)}
        if status:
            query["status"] = status

        documents = await self.store.find(PROPERTIES_COLLECTION, query, sort=[("createdAt", -1)])
        return [present_property(document, self.base_url) for document in documents]

    async def update_property(
        self,
        account: Account,
        property_id: Any,
        payload: dict,
        now: Optional[datetime] = None,
    ) -> dict:
        """Merge client changes into the stored property and re-validate the whole."""
        payload = strip_immutable(payload)
        current = await self._get_owned_property(account, property_id)

        if "location" in payload:
            self._check_location(payload["location"])

        merged = strip_immutable(current)
        merged.update(payload)

        # Turning a house into land drops the stored house fields
        if str(merged.get("type", "")).strip().lower() == PropertyType.LAND.value:
            for field in HOUSE_ONLY_FIELDS:
                if field not in payload:
                    merged.pop(field, None)

        document = validate_property(merged).to_document()
        document["updatedAt"] = now or datetime.now(timezone.utc)

        update: dict[str, Any] = {"$set": document}
        stale = {field: "" for field in HOUSE_ONLY_FIELDS if field in current and field not in document}
        if stale:
            update["$unset"] = stale

        updated = await self.store.update_one(PROPERTIES_COLLECTION, {"_id": current["_id"]}, update)
        if updated is None:
            raise NotFoundError(PROPERTY_NOTFOUND_ERROR_MESSAGE, details={"propertyId": str(property_id)})

        logger.info("Property updated", property_id=str(property_id), fields=sorted(payload))
        return present_property(updated, self.base_url)

    async def change_status(
        self,
        account: Account,
        property_id: Any,
        new_status: Any,
        now: Optional[datetime] = None,
    ) -> dict:
        """Move a property through its listing lifecycle."""
        try:
            status = PropertyStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown property status: {new_status}")

        current = await self._get_owned_property(account, property_id)
        current_status = PropertyStatus(current.get("status") or PropertyStatus.UNLISTED.value)
        purpose = current.get("purpose")

        if status == PropertyStatus.SOLD and purpose != Purpose.SELL.value:
            raise ValidationError("Can't mark as sold a renting property!")
        if status == PropertyStatus.RENTED and purpose != Purpose.RENT.value:
            raise ValidationError("Can't mark as rent a selling property!")
        if status not in STATUS_TRANSITIONS[current_status]:
            raise ValidationError(
                STATUS_TRANSITION_ERRORS[status],
                details={"from": current_status.value, "to": status.value},
            )

        now = now or datetime.now(timezone.utc)
        changes: dict[str, Any] = {"status": status.value, "statusChangeDate": now, "updatedAt": now}
        if status == PropertyStatus.LISTED and current_status != PropertyStatus.LISTED:
            changes["publishDate"] = now
        if status == PropertyStatus.UNLISTED and current_status != PropertyStatus.UNLISTED:
            changes["unPublishDate"] = now

        updated = await self.store.update_one(PROPERTIES_COLLECTION, {"_id": current["_id"]}, {"$set": changes})
        if updated is None:
            raise NotFoundError(PROPERTY_NOTFOUND_ERROR_MESSAGE, details={"propertyId": str(property_id)})

        logger.info(
            "Property status changed",
            property_id=str(property_id),
            from_status=current_status.value,
            to_status=status.value
        )
        return present_property(updated, self.base_url)

    async def remove_property(self, account: Account, property_id: Any) -> list[str]:
        """Delete a property and every stored image key. Returns the removed keys."""
        current = await self._get_owned_property(account, property_id)
        keys = variant_keys(current.get("imagesNames"))

        with log_timing("remove_property", logger=logger, property_id=str(property_id), keys_count=len(keys)):
            await self.blob_store.delete(*keys)
            deleted = await self.store.delete_one(PROPERTIES_COLLECTION, {"_id": current["_id"]})
            if not deleted:
                raise NotFoundError(PROPERTY_NOTFOUND_ERROR_MESSAGE, details={"propertyId": str(property_id)})

            await self.store.update_one(
                ACCOUNTS_COLLECTION,
                {"_id": current["ownerId"], "listingCount": {"$gt": 0}},
                {"$inc": {"listingCount": -1}},
            )
        return keys

    async def add_property_images(
        self,
        account: Account,
        property_id: Any,
        images: list[UploadedImage],
    ) -> tuple[dict, ImageJob]:
        """
        Accept uploads for background processing.

        The cap and the per-file checks run before anything is queued; the
        returned property does not yet include the new images.
        """
        if not images:
            raise ValidationError("No image was uploaded")

        current = await self._get_owned_property(account, property_id)
        check_image_cap(len(current.get("imagesNames") or []), len(images))
        for image in images:
            self.pipeline.check_upload(image)

        job = await self.job_queue.submit(str(current["_id"]), images)
        return present_property(current, self.base_url), job

    async def _discard_uploaded(self, job: ImageJob, keys: list[str]) -> None:
        """Best-effort removal of variants whose metadata could not be saved."""
        try:
            await self.blob_store.delete(*keys)
        except BlobStoreError as e:
            logger.error(
                "Failed to remove unsaved image variants",
                job_id=job.job_id,
                property_id=job.property_id,
                keys=keys,
                error=str(e)
            )

    async def process_image_job(self, job: ImageJob) -> None:
        """Turn a job's uploads into variant sets and store them in one update."""
        result = await self.pipeline.process_batch(
            job.images,
            PROPERTY_IMAGE_PROFILE,
            stop_on_error=self.stop_on_image_error,
        )
        if not result.variant_sets:
            logger.warning(
                "No image of the job could be processed",
                job_id=job.job_id,
                property_id=job.property_id,
                failed=len(result.failures)
            )
            return

        image_sets = [variant_set.model_dump(by_alias=True) for variant_set in result.variant_sets]
        try:
            updated = await self.store.update_one(
                PROPERTIES_COLLECTION,
                {"_id": to_object_id(job.property_id)},
                {
                    "$push": {"imagesNames": {"$each": image_sets}},
                    "$set": {"updatedAt": datetime.now(timezone.utc)},
                },
            )
        except InfrastructureError:
            await self._discard_uploaded(job, variant_keys(image_sets))
            raise

        if updated is None:
            # Property deleted while the job ran
            orphans = variant_keys(image_sets)
            logger.warning(
                "Property removed before its images were stored",
                job_id=job.job_id,
                property_id=job.property_id,
                orphaned_keys=len(orphans)
            )
            await self._discard_uploaded(job, orphans)
            return

        logger.info(
            "Property images stored",
            job_id=job.job_id,
            property_id=job.property_id,
            stored=len(image_sets),
            failed=len(result.failures)
        )

    async def remove_property_images(
        self,
        account: Account,
        property_id: Any,
        source_names: Iterable[str],
    ) -> dict:
        """Remove the variant sets whose ``sourceName`` is listed, blobs included."""
        source_names = [name for name in source_names or [] if name]
        current = await self._get_owned_property(account, property_id)

        matching = [
            image_set for image_set in current.get("imagesNames") or []
            if image_set.get("sourceName") in source_names
        ]
        if not matching:
            return present_property(current, self.base_url)

        await self.blob_store.delete(*variant_keys(matching))
        updated = await self.store.update_one(
            PROPERTIES_COLLECTION,
            {"_id": current["_id"]},
            {
                "$pull": {"imagesNames": {"sourceName": {"$in": source_names}}},
                "$set": {"updatedAt": datetime.now(timezone.utc)},
            },
        )
        if updated is None:
            raise NotFoundError(PROPERTY_NOTFOUND_ERROR_MESSAGE, details={"propertyId": str(property_id)})

        logger.info("Property images removed", property_id=str(property_id), removed=len(matching))
        return present_property(updated, self.base_url)
