"""Application configuration read from environment variables."""

import os
from pathlib import Path


_DEFAULT_GEOFENCE_PATH = Path(__file__).resolve().parent.parent / "data" / "guinea.geojson"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class AppConfig:
    """Centralized application configuration."""

    # Document store
    MONGODB_URI = os.environ.get("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DATABASE = os.environ.get("MONGODB_DATABASE", "properties")

    # Blob store
    SUPABASE_URL = os.environ.get("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")
    STORAGE_BUCKET = os.environ.get("STORAGE_BUCKET", "property-images")
    IMAGES_BASE_URL = os.environ.get("IMAGES_BASE_URL", "").rstrip("/")

    # Image pipeline
    MAX_PROPERTY_IMAGES = _env_int("MAX_PROPERTY_IMAGES", 30)
    MAX_IMAGE_SIZE = _env_int("MAX_IMAGE_SIZE", 5_000_000)
    IMAGE_QUALITY = _env_int("IMAGE_QUALITY", 100)
    MAX_CONCURRENT_IMAGE_TRANSFORMS = _env_int("MAX_CONCURRENT_IMAGE_TRANSFORMS", 2)
    IMAGE_JOB_WORKERS = _env_int("IMAGE_JOB_WORKERS", 1)

    # Search
    SEARCH_INDEX = os.environ.get("SEARCH_INDEX", "main_search")
    SEARCH_TEXT_ENABLED = os.environ.get("SEARCH_TEXT_ENABLED", "false").lower() == "true"

    # Free listing promotion (start in ms since epoch, period in years)
    PROMO_START_DATE = _env_int("PROMO_START_DATE", 0)
    PROMO_PERIOD = _env_int("PROMO_PERIOD", 0)

    GEOFENCE_PATH = Path(os.environ.get("GEOFENCE_PATH", str(_DEFAULT_GEOFENCE_PATH)))
