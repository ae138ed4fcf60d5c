"""Image upload and variant models."""

from typing import Optional
from pydantic import BaseModel, Field

from src.models.base import CamelModel


ACCEPTED_CONTENT_TYPES = ("image/jpg", "image/jpeg", "image/png", "image/webp")

WEBP_CONTENT_TYPE = "image/webp"


class UploadedImage(BaseModel):
    """Raw file received from a client upload."""
    filename: str = Field(default="", description="Client side file name")
    content_type: str = Field(..., description="Declared MIME type")
    data: bytes = Field(..., description="File contents")

    @property
    def size(self) -> int:
        return len(self.data)


class ImageMetadata(BaseModel):
    """Decoded image header information."""
    width: int
    height: int
    format: Optional[str] = None


class VariantProfile(BaseModel):
    """How one call site fans an upload out into stored variants."""
    key_prefix: str = Field(..., description="Prefix of the generated base key")
    widths: tuple[int, ...] = Field(..., min_length=1, description="Target widths of derived copies")
    min_width: int = Field(default=0, ge=0)
    min_height: int = Field(default=0, ge=0)
    keep_source: bool = Field(default=True, description="Upload the full-resolution source too")


PROPERTY_IMAGE_PROFILE = VariantProfile(
    key_prefix="property-img",
    widths=(500, 800),
    min_width=1920,
    min_height=1080,
)


def avatar_profile(account_id: str) -> VariantProfile:
    """Avatars are stored as a single 500px copy."""
    return VariantProfile(
        key_prefix=f"avatar-{account_id}",
        widths=(500,),
        keep_source=False,
    )


class ImageVariant(BaseModel):
    """One encoded copy ready for upload."""
    key: str
    width: int
    content_type: str
    data: bytes


class ImageVariantSet(CamelModel):
    """Stored metadata of one photo: its source key and every stored width."""
    source_name: str = Field(..., min_length=1, description="Full-resolution key")
    names: list[str] = Field(..., min_length=1, description="Keys ordered smallest to largest")
