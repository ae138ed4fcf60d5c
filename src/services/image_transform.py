"""Image decode/encode/resize primitives built on Pillow."""

from io import BytesIO
from typing import Optional
from PIL import Image, ImageOps, UnidentifiedImageError

from src.models.image import ImageMetadata
from src.utils.errors import ImageValidationError

FORMAT_CONTENT_TYPES = {
    "WEBP": "image/webp",
    "JPEG": "image/jpeg",
    "PNG": "image/png",
}


def _open(data: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ImageValidationError(f"The uploaded file is not a readable image: {e}")
    return image


def decode_metadata(data: bytes) -> ImageMetadata:
    """Read dimensions and format without keeping the decoded pixels."""
    try:
        with Image.open(BytesIO(data)) as image:
            width, height = image.size
            # Phone photos often store portrait shots rotated via EXIF
            if image.getexif().get(0x0112) in (5, 6, 7, 8):
                width, height = height, width
            return ImageMetadata(width=width, height=height, format=image.format)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ImageValidationError(f"The uploaded file is not a readable image: {e}")


def _save(image: Image.Image, image_format: str, quality: Optional[int] = None) -> bytes:
    if image_format == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    options = {}
    if quality is not None and image_format in ("WEBP", "JPEG"):
        options["quality"] = quality

    buffer = BytesIO()
    image.save(buffer, format=image_format, **options)
    return buffer.getvalue()


def encode(data: bytes, image_format: str = "WEBP", quality: int = 100) -> bytes:
    """Re-encode an image into ``image_format``."""
    image = ImageOps.exif_transpose(_open(data))
    return _save(image, image_format.upper(), quality)


def resize(data: bytes, width: int, quality: Optional[int] = None) -> bytes:
    """Resize to ``width`` keeping the aspect ratio and the source format."""
    source = _open(data)
    image_format = source.format or "PNG"
    image = ImageOps.exif_transpose(source)

    height = max(1, round(image.height * width / image.width))
    resized = image.resize((width, height), Image.Resampling.LANCZOS)
    return _save(resized, image_format, quality)


def content_type_for(image_format: Optional[str]) -> Optional[str]:
    return FORMAT_CONTENT_TYPES.get((image_format or "").upper())
