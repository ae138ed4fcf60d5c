"""User facing error messages."""

from typing import Optional

from src.utils.config import AppConfig

NO_LOCATION_ERROR_MESSAGE = "A property cannot be posted without GPS coordinates"

LOCATION_INVALID_ERROR_MESSAGE = "Cannot create a property outside of Guinea"

PROPERTY_NOTFOUND_ERROR_MESSAGE = "This property does not exist on our server"

NOT_PERMITTED_ERROR_MESSAGE = "You are not allowed to perform this action"

LOW_RESOLUTION_ERROR_MESSAGE = "Only high quality (HD) images are allowed"

WRONG_FILE_TYPE_ERROR_MESSAGE = "Wrong file extension! Only jpg, jpeg, png and webp images are allowed"

FILE_TOO_LARGE_ERROR_MESSAGE = "Image is too large"

PROPERTY_VALIDATION_ERROR_MESSAGE = "Validation error"


def max_images_error_message(maximum: Optional[int] = None) -> str:
    maximum = maximum if maximum is not None else AppConfig.MAX_PROPERTY_IMAGES
    return f"A property cannot have more than {maximum} photos"
