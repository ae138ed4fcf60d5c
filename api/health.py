"""Health check endpoint."""

from api.properties import handle, json_response
from src.services.container import ServiceContainer
from src.utils.logging_config import LoggingConfig


async def health(request: dict) -> dict:
    """Report whether the document store answers."""
    async def operation(services: ServiceContainer):
        await services.store.ping()
        return {"status": "ok", "service": "property-core"}

    response = await handle(request or {}, operation)
    if response["statusCode"] == 500:
        correlation_id = response["headers"].get(LoggingConfig.LOG_CORRELATION_ID_HEADER)
        return json_response(503, {"status": "unavailable", "service": "property-core"}, correlation_id)
    return response
