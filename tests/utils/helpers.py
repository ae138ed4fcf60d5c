"""Test helper functions."""

import json
from io import BytesIO
from typing import Any, Dict, Optional

from PIL import Image

from src.models.image import UploadedImage

_FORMAT_CONTENT_TYPES = {"PNG": "image/png", "JPEG": "image/jpeg", "WEBP": "image/webp"}


def make_image_bytes(width: int, height: int, image_format: str = "PNG", color=(200, 120, 40)) -> bytes:
    """Encode a solid image in memory."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=image_format)
    return buffer.getvalue()


def make_upload(
    width: int = 1920,
    height: int = 1080,
    image_format: str = "PNG",
    filename: Optional[str] = None,
    content_type: Optional[str] = None,
) -> UploadedImage:
    """An ``UploadedImage`` wrapping a generated picture."""
    return UploadedImage(
        filename=filename or f"photo.{image_format.lower()}",
        content_type=content_type or _FORMAT_CONTENT_TYPES[image_format],
        data=make_image_bytes(width, height, image_format),
    )


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(data)) as image:
        return image.size


def image_format(data: bytes) -> str:
    with Image.open(BytesIO(data)) as image:
        return image.format


def create_request(
    query: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    body: Optional[Dict[str, Any]] = None,
    params: Optional[Dict[str, str]] = None,
    account: Optional[Dict[str, Any]] = None,
    files: Optional[list] = None,
) -> Dict[str, Any]:
    """Create a request mapping as the handlers receive it."""
    return {
        "query": query or {},
        "headers": headers or {"content-type": "application/json"},
        "body": body,
        "params": params or {},
        "account": account,
        "files": files or [],
    }


def response_json(response: Dict[str, Any]) -> Any:
    return json.loads(response["body"])
