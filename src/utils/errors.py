"""Error handling utilities."""

from typing import Optional


class PropertyCoreError(Exception):
    """Base exception for the property core."""
    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(PropertyCoreError):
    """Bad input shape or range."""
    status_code = 400


class ImageValidationError(ValidationError):
    """Uploaded image rejected (type, size, resolution or cap)."""
    pass


class NotFoundError(PropertyCoreError):
    """Referenced property or account does not exist."""
    status_code = 404


class NotPermittedError(PropertyCoreError):
    """Actor is not allowed to act on the resource."""
    status_code = 403


class InfrastructureError(PropertyCoreError):
    """A backing service is unavailable or failed."""
    status_code = 500


class StoreError(InfrastructureError):
    """Document store operation error."""
    pass


class BlobStoreError(InfrastructureError):
    """Blob storage operation error."""
    pass


class GeofenceDataError(InfrastructureError):
    """Reference geofence dataset could not be loaded."""
    pass
