"""Property endpoints.

Each handler takes a request mapping with ``headers``, ``query``, ``body``,
``params``, ``account`` and ``files`` and returns a serverless response
``{"statusCode", "headers", "body"}``. Routing is left to the platform.
"""

from typing import Any, Awaitable, Callable, Optional

from src.models.account import Account
from src.models.image import UploadedImage
from src.models.search import ListingParams
from src.services.container import ServiceContainer, get_container
from src.utils.errors import NotPermittedError, PropertyCoreError, ValidationError
from src.utils.logging import correlation_context, get_structured_logger, setup_logging
from src.utils.logging_config import LoggingConfig
from src.utils.parsing import nest_bracket_params
from src.utils.serialization import dumps

setup_logging()
logger = get_structured_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Something went wrong, please try again later"

Operation = Callable[[ServiceContainer], Awaitable[Any]]


def _header(headers: dict, name: str) -> Optional[str]:
    wanted = name.lower()
    for key, value in (headers or {}).items():
        if str(key).lower() == wanted:
            return value
    return None


def json_response(status_code: int, body: Any = None, correlation_id: Optional[str] = None) -> dict:
    headers = {"Content-Type": "application/json"}
    if correlation_id:
        headers[LoggingConfig.LOG_CORRELATION_ID_HEADER] = correlation_id
    return {
        "statusCode": status_code,
        "headers": headers,
        "body": "" if body is None else dumps(body),
    }


def error_response(error: Exception, correlation_id: Optional[str] = None) -> dict:
    """Map an exception onto the error taxonomy's status codes."""
    if isinstance(error, PropertyCoreError) and error.status_code < 500:
        body = {"error": error.message}
        if error.details:
            body["details"] = error.details
        return json_response(error.status_code, body, correlation_id)

    logger.error(
        "Request failed",
        error=str(error),
        error_type=type(error).__name__,
        exc_info=True
    )
    return json_response(500, {"error": INTERNAL_ERROR_MESSAGE}, correlation_id)


async def handle(request: dict, operation: Operation, success_status: int = 200) -> dict:
    """Run one operation inside a correlation context and serialize the outcome."""
    headers = request.get("headers") or {}
    with correlation_context(_header(headers, LoggingConfig.LOG_CORRELATION_ID_HEADER)) as correlation_id:
        try:
            result = await operation(get_container())
        except Exception as e:
            return error_response(e, correlation_id)

        if success_status == 204:
            return json_response(204, None, correlation_id)
        return json_response(success_status, result, correlation_id)


def _account(request: dict) -> Account:
    account = request.get("account")
    if account is None:
        raise NotPermittedError("You must be signed in to perform this action")
    if isinstance(account, Account):
        return account
    return Account.model_validate(account)


def _param(request: dict, name: str) -> str:
    value = (request.get("params") or {}).get(name)
    if not value:
        raise ValidationError(f"Missing path parameter: {name}")
    return value


def _body(request: dict) -> dict:
    body = request.get("body") or {}
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _files(request: dict) -> list[UploadedImage]:
    files = []
    for item in request.get("files") or []:
        if isinstance(item, UploadedImage):
            files.append(item)
            continue
        files.append(UploadedImage(
            filename=item.get("filename") or "",
            content_type=item.get("content_type") or item.get("contentType") or "",
            data=item.get("data") or b"",
        ))
    return files


async def list_properties(request: dict) -> dict:
    """GET /properties - search, filter, sort and paginate."""
    async def operation(services: ServiceContainer):
        params = ListingParams.from_request(
            nest_bracket_params(request.get("query")),
            request.get("headers") or {},
        )
        return await services.search.fetch_properties(params)
    return await handle(request, operation)


async def get_property(request: dict) -> dict:
    """GET /properties/{id}"""
    async def operation(services: ServiceContainer):
        return await services.properties.fetch_property(_param(request, "id"))
    return await handle(request, operation)


async def get_owner_properties(request: dict) -> dict:
    """GET /accounts/{ownerId}/properties?exclude=&status="""
    query = request.get("query") or {}

    async def operation(services: ServiceContainer):
        properties = await services.properties.fetch_owner_properties(
            _param(request, "ownerId"),
            excluded_property_id=query.get("exclude"),
            status=query.get("status"),
        )
        return {"properties": properties}
    return await handle(request, operation)


async def create_property(request: dict) -> dict:
    """POST /properties"""
    async def operation(services: ServiceContainer):
        return await services.properties.create_property(_account(request), _body(request))
    return await handle(request, operation, success_status=201)


async def update_property(request: dict) -> dict:
    """PATCH /properties/{id}"""
    async def operation(services: ServiceContainer):
        return await services.properties.update_property(_account(request), _param(request, "id"), _body(request))
    return await handle(request, operation)


async def change_property_status(request: dict) -> dict:
    """PATCH /properties/{id}/status with ``{"status": ...}``"""
    async def operation(services: ServiceContainer):
        return await services.properties.change_status(
            _account(request),
            _param(request, "id"),
            _body(request).get("status"),
        )
    return await handle(request, operation)


async def delete_property(request: dict) -> dict:
    """DELETE /properties/{id}"""
    async def operation(services: ServiceContainer):
        return await services.properties.remove_property(_account(request), _param(request, "id"))
    return await handle(request, operation, success_status=204)


async def upload_property_images(request: dict) -> dict:
    """POST /properties/{id}/images - processed in the background."""
    async def operation(services: ServiceContainer):
        property_document, job = await services.properties.add_property_images(
            _account(request),
            _param(request, "id"),
            _files(request),
        )
        return {"jobId": job.job_id, "property": property_document}
    return await handle(request, operation, success_status=202)


async def delete_property_images(request: dict) -> dict:
    """DELETE /properties/{id}/images with ``{"sourceNames": [...]}``"""
    async def operation(services: ServiceContainer):
        source_names = _body(request).get("sourceNames")
        if not isinstance(source_names, list) or not source_names:
            raise ValidationError("sourceNames must be a non-empty list")
        return await services.properties.remove_property_images(_account(request), _param(request, "id"), source_names)
    return await handle(request, operation)


async def upload_avatar(request: dict) -> dict:
    """PUT /accounts/me/avatar"""
    async def operation(services: ServiceContainer):
        files = _files(request)
        if len(files) != 1:
            raise ValidationError("Exactly one avatar image is expected")
        account = await services.avatars.upload_avatar(_account(request), files[0])
        return account.model_dump(mode="json", by_alias=True)
    return await handle(request, operation)
