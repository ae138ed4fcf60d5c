"""Turn stored image variant metadata into responsive image descriptors."""

from typing import Any, Iterable, Optional

from src.utils.config import AppConfig

PLACEHOLDER_THUMBNAIL = "default-property-thumbnail.png"


def _base_url(base_url: Optional[str]) -> str:
    return (AppConfig.IMAGES_BASE_URL if base_url is None else base_url).rstrip("/")


def public_url(key: str, base_url: Optional[str] = None) -> str:
    return f"{_base_url(base_url)}/{key}"


def width_token(key: str) -> str:
    """Trailing ``-<width>`` of a key; a key without a dash is its own token."""
    return key.rsplit("-", 1)[-1]


def format_srcset(names: Optional[Iterable[str]], base_url: Optional[str] = None) -> str:
    """``"<url> <width>w"`` for each key, comma separated, order preserved."""
    return ", ".join(
        f"{public_url(name, base_url)} {width_token(name)}w"
        for name in (names or [])
    )


def pre_process_image(property_document: Optional[dict], base_url: Optional[str] = None) -> list[dict]:
    """Build ``{sourceName, src, srcset}`` for every stored variant set."""
    if not property_document:
        return []

    images = []
    for image_set in property_document.get("imagesNames") or []:
        source_name = image_set.get("sourceName")
        names = list(image_set.get("names") or [])
        default_key = names[0] if names else source_name

        images.append({
            "sourceName": source_name,
            "src": public_url(default_key, base_url) if default_key else None,
            "srcset": format_srcset(names, base_url),
        })
    return images


def get_property_thumbnail(images: list[dict], base_url: Optional[str] = None) -> dict[str, Any]:
    """First image, or the placeholder when the property has none."""
    if images:
        return images[0]
    return {"src": public_url(PLACEHOLDER_THUMBNAIL, base_url), "srcset": ""}


def present_property(property_document: dict, base_url: Optional[str] = None) -> dict:
    """Replace raw ``imagesNames`` with ``images`` and a ``thumbnail``."""
    presented = dict(property_document)
    presented["images"] = pre_process_image(presented, base_url)
    presented["thumbnail"] = get_property_thumbnail(presented["images"], base_url)
    presented.pop("imagesNames", None)
    return presented
