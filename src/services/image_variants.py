"""Image variant pipeline.

One uploaded image goes through::

    received -> resolution-checked -> transcoded -> resized-into-variants -> uploaded

and comes out as an ``ImageVariantSet``. ``names`` lists every stored width
from smallest to largest: the resized copies first, then the full-resolution
source, which is also ``sourceName``. Persisting the sets is the caller's job.
"""

import asyncio
from typing import Callable, Optional
from pydantic import BaseModel, Field
from ulid import ULID

from src.models.image import (
    ACCEPTED_CONTENT_TYPES,
    WEBP_CONTENT_TYPE,
    ImageMetadata,
    ImageVariant,
    ImageVariantSet,
    UploadedImage,
    VariantProfile,
)
from src.services import image_transform
from src.services.messages import (
    FILE_TOO_LARGE_ERROR_MESSAGE,
    LOW_RESOLUTION_ERROR_MESSAGE,
    WRONG_FILE_TYPE_ERROR_MESSAGE,
    max_images_error_message,
)
from src.utils.config import AppConfig
from src.utils.errors import BlobStoreError, ImageValidationError
from src.utils.logging import get_structured_logger, log_timing

logger = get_structured_logger(__name__)


def generate_image_key(prefix: str) -> str:
    """Globally unique base key, e.g. ``property-img-01HV...``."""
    return f"{prefix}-{ULID()}"


def variant_key(base_key: str, width: int) -> str:
    return f"{base_key}-{width}"


def check_image_cap(stored: int, incoming: int, maximum: Optional[int] = None) -> None:
    """Reject the whole batch when it would push a property over its image limit."""
    maximum = maximum if maximum is not None else AppConfig.MAX_PROPERTY_IMAGES
    if stored >= maximum or stored + incoming > maximum:
        raise ImageValidationError(
            max_images_error_message(maximum),
            details={"stored": stored, "incoming": incoming, "maximum": maximum},
        )


class ImageFailure(BaseModel):
    """One image of a batch that was aborted."""
    index: int
    filename: str = ""
    error: str
    error_type: str


class BatchResult(BaseModel):
    """Outcome of a batch: the sets ready to persist plus the aborted images."""
    variant_sets: list[ImageVariantSet] = Field(default_factory=list)
    failures: list[ImageFailure] = Field(default_factory=list)


class ImageVariantPipeline:
    """Turns uploads into stored variants; all-or-nothing per image."""

    def __init__(
        self,
        blob_store,
        quality: Optional[int] = None,
        max_image_size: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        key_factory: Callable[[str], str] = generate_image_key,
    ):
        self.blob_store = blob_store
        self.quality = quality if quality is not None else AppConfig.IMAGE_QUALITY
        self.max_image_size = max_image_size or AppConfig.MAX_IMAGE_SIZE
        self.max_concurrency = max(1, max_concurrency or AppConfig.MAX_CONCURRENT_IMAGE_TRANSFORMS)
        self.key_factory = key_factory

    def check_upload(self, image: UploadedImage) -> None:
        if image.content_type.lower() not in ACCEPTED_CONTENT_TYPES:
            raise ImageValidationError(WRONG_FILE_TYPE_ERROR_MESSAGE, details={"contentType": image.content_type})
        if image.size > self.max_image_size:
            raise ImageValidationError(
                FILE_TOO_LARGE_ERROR_MESSAGE,
                details={"size": image.size, "maximum": self.max_image_size},
            )

    @staticmethod
    def check_resolution(metadata: ImageMetadata, profile: VariantProfile) -> None:
        if metadata.width < profile.min_width or metadata.height < profile.min_height:
            raise ImageValidationError(
                LOW_RESOLUTION_ERROR_MESSAGE,
                details={"width": metadata.width, "height": metadata.height},
            )

    async def transcode(self, image: UploadedImage, metadata: ImageMetadata) -> tuple[bytes, str]:
        """
        WebP encode, kept only when it is strictly smaller than the upload.

        The decoded format decides, not the declared content type, so the
        stored content type always matches the stored bytes.
        """
        source_type = image_transform.content_type_for(metadata.format)
        if source_type is None:
            raise ImageValidationError(WRONG_FILE_TYPE_ERROR_MESSAGE, details={"format": metadata.format})
        if source_type == WEBP_CONTENT_TYPE:
            return image.data, WEBP_CONTENT_TYPE

        converted = await asyncio.to_thread(image_transform.encode, image.data, "WEBP", self.quality)
        logger.debug(
            "Image transcoded",
            original_size=image.size,
            converted_size=len(converted),
            kept=len(converted) < image.size
        )
        if len(converted) < image.size:
            return converted, WEBP_CONTENT_TYPE
        return image.data, source_type

    async def resize_variants(
        self,
        data: bytes,
        content_type: str,
        base_key: str,
        widths: tuple[int, ...],
    ) -> list[ImageVariant]:
        """Resize the same source into every width concurrently."""
        widths = sorted(set(widths))
        buffers = await asyncio.gather(*(
            asyncio.to_thread(image_transform.resize, data, width, self.quality)
            for width in widths
        ))
        return [
            ImageVariant(key=variant_key(base_key, width), width=width, content_type=content_type, data=buffer)
            for width, buffer in zip(widths, buffers)
        ]

    async def upload(self, variants: list[ImageVariant]) -> None:
        """Upload a whole variant set, removing partial uploads on failure."""
        try:
            await self.blob_store.put_many(variants)
        except BlobStoreError as e:
            uploaded = e.details.get("uploaded", [])
            if uploaded:
                try:
                    await self.blob_store.delete(*uploaded)
                except BlobStoreError as cleanup_error:
                    logger.error(
                        "Failed to remove partially uploaded variants",
                        keys=uploaded,
                        error=str(cleanup_error)
                    )
            raise

    async def process_image(self, image: UploadedImage, profile: VariantProfile) -> ImageVariantSet:
        """Validate, transform and upload one image. Nothing is uploaded on rejection."""
        self.check_upload(image)

        metadata = await asyncio.to_thread(image_transform.decode_metadata, image.data)
        self.check_resolution(metadata, profile)

        base_key = self.key_factory(profile.key_prefix)

        with log_timing("process_image", logger=logger, base_key=base_key, width=metadata.width, height=metadata.height):
            data, content_type = await self.transcode(image, metadata)
            variants = await self.resize_variants(data, content_type, base_key, profile.widths)

            if profile.keep_source:
                source = ImageVariant(
                    key=variant_key(base_key, metadata.width),
                    width=metadata.width,
                    content_type=content_type,
                    data=data,
                )
                variants.append(source)

            await self.upload(variants)

        names = [variant.key for variant in variants]
        return ImageVariantSet(source_name=names[-1], names=names)

    async def process_batch(
        self,
        images: list[UploadedImage],
        profile: VariantProfile,
        stop_on_error: bool = False,
    ) -> BatchResult:
        """
        Process several images, at most ``max_concurrency`` at a time.

        With ``stop_on_error`` images run one by one and the first failure ends
        the batch; otherwise every image is attempted. Successful sets keep the
        upload order.
        """
        result = BatchResult()

        def record_failure(index: int, error: Exception) -> None:
            logger.error(
                "Image processing failed",
                image_index=index,
                image_filename=images[index].filename,
                error=str(error),
                error_type=type(error).__name__,
                exc_info=not isinstance(error, ImageValidationError)
            )
            result.failures.append(ImageFailure(
                index=index,
                filename=images[index].filename,
                error=getattr(error, "message", str(error)),
                error_type=type(error).__name__,
            ))

        if stop_on_error:
            for index, image in enumerate(images):
                try:
                    result.variant_sets.append(await self.process_image(image, profile))
                except Exception as e:
                    record_failure(index, e)
                    break
            return result

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(image: UploadedImage) -> ImageVariantSet:
            async with semaphore:
                return await self.process_image(image, profile)

        outcomes = await asyncio.gather(*(run(image) for image in images), return_exceptions=True)
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, ImageVariantSet):
                result.variant_sets.append(outcome)
            elif isinstance(outcome, Exception):
                record_failure(index, outcome)
            else:
                raise outcome
        return result
