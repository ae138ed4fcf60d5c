"""Tests for the property endpoints."""

import pytest
from unittest.mock import AsyncMock

from bson import ObjectId

from api import properties as endpoints
from api.health import health
from src.services.container import ServiceContainer, set_container
from src.services.image_jobs import ImageJob
from src.utils.errors import StoreError
from tests.utils.assertions import assert_valid_pagination, assert_valid_response
from tests.utils.factories import (
    DAKAR,
    create_account_data,
    create_house_payload,
    create_property_document,
    create_variant_set,
)
from tests.utils.helpers import create_request, make_upload, response_json


@pytest.fixture
def container(mock_store, mock_blob_store):
    services = ServiceContainer.build(mock_store, mock_blob_store, base_url="https://cdn.test")
    set_container(services)
    yield services
    set_container(None)


@pytest.fixture
def account_data():
    return create_account_data()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_properties_returns_envelope(container, mock_store):
    documents = [create_property_document(image_sets=[create_variant_set("k")])]
    mock_store.aggregate = AsyncMock(side_effect=[[{"total": 1}], documents])

    response = await endpoints.list_properties(create_request(
        query={"price[gte]": "10000000", "sortBy": "-price", "limit": "10"},
        headers={"north_east_bounds": "-7.6,12.7", "south_west_bounds": "-15.1,7.2"},
    ))

    assert_valid_response(response, 200)
    body = response_json(response)
    assert_valid_pagination(body)
    assert body["limit"] == 10
    assert body["properties"][0]["_id"] == str(documents[0]["_id"])
    assert body["properties"][0]["thumbnail"]["src"] == "https://cdn.test/k-500"

    count_pipeline = mock_store.aggregate.await_args_list[0].args[1]
    match = next(stage["$match"] for stage in count_pipeline if "$match" in stage)
    assert match["price"] == {"$gte": 10_000_000}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_correlation_id_is_echoed(container, mock_store):
    mock_store.aggregate = AsyncMock(side_effect=[[], []])

    response = await endpoints.list_properties(create_request(headers={"X-Correlation-ID": "req_test"}))

    assert response["headers"]["X-Correlation-ID"] == "req_test"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_missing_property_is_404(container):
    response = await endpoints.get_property(create_request(params={"id": str(ObjectId())}))

    assert_valid_response(response, 404)
    assert "does not exist" in response_json(response)["error"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_malformed_id_is_400(container):
    response = await endpoints.get_property(create_request(params={"id": "xyz"}))

    assert_valid_response(response, 400)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_property_returns_201(container, mock_store, account_data):
    response = await endpoints.create_property(create_request(
        body=create_house_payload(),
        account=account_data,
    ))

    assert_valid_response(response, 201)
    body = response_json(response)
    assert body["ownerId"] == str(account_data["_id"])
    assert body["status"] == "unlisted"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_property_outside_guinea_is_400(container, account_data):
    response = await endpoints.create_property(create_request(
        body=create_house_payload(location={"type": "Point", "coordinates": DAKAR}),
        account=account_data,
    ))

    assert_valid_response(response, 400)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_without_account_is_403(container):
    response = await endpoints.create_property(create_request(body=create_house_payload()))

    assert_valid_response(response, 403)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_by_stranger_is_403(container, mock_store, account_data):
    mock_store.find_one = AsyncMock(return_value=create_property_document())

    response = await endpoints.update_property(create_request(
        params={"id": str(ObjectId())},
        body={"price": 50_000_000},
        account=account_data,
    ))

    assert_valid_response(response, 403)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_property_returns_204(container, mock_store, mock_blob_store, account_data):
    document = create_property_document(owner_id=account_data["_id"], image_sets=[create_variant_set("k")])
    mock_store.find_one = AsyncMock(return_value=document)

    response = await endpoints.delete_property(create_request(params={"id": str(document["_id"])}, account=account_data))

    assert response["statusCode"] == 204
    assert response["body"] == ""
    mock_blob_store.delete.assert_awaited_once_with("k-500", "k-800", "k-1920")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upload_images_is_accepted_for_background_processing(container, mock_store, account_data):
    document = create_property_document(owner_id=account_data["_id"])
    mock_store.find_one = AsyncMock(return_value=document)
    container.properties.job_queue.submit = AsyncMock(
        side_effect=lambda property_id, images: ImageJob(property_id=property_id, images=images)
    )

    response = await endpoints.upload_property_images(create_request(
        params={"id": str(document["_id"])},
        account=account_data,
        files=[{"filename": "a.png", "content_type": "image/png", "data": make_upload(64, 64).data}],
    ))

    assert_valid_response(response, 202)
    body = response_json(response)
    assert body["jobId"]
    assert body["property"]["_id"] == str(document["_id"])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_upload_wrong_file_type_is_400(container, mock_store, account_data):
    mock_store.find_one = AsyncMock(return_value=create_property_document(owner_id=account_data["_id"]))

    response = await endpoints.upload_property_images(create_request(
        params={"id": str(ObjectId())},
        account=account_data,
        files=[{"filename": "a.gif", "content_type": "image/gif", "data": b"GIF89a"}],
    ))

    assert_valid_response(response, 400)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_change_status_endpoint(container, mock_store, account_data):
    document = create_property_document(owner_id=account_data["_id"], status="unlisted")
    mock_store.find_one = AsyncMock(return_value=document)
    mock_store.update_one = AsyncMock(side_effect=lambda collection, query, update: {**document, **update["$set"]})

    response = await endpoints.change_property_status(create_request(
        params={"id": str(document["_id"])},
        body={"status": "listed"},
        account=account_data,
    ))

    assert_valid_response(response, 200)
    assert response_json(response)["status"] == "listed"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_images_requires_source_names(container, account_data):
    response = await endpoints.delete_property_images(create_request(
        params={"id": str(ObjectId())},
        body={"sourceNames": []},
        account=account_data,
    ))

    assert_valid_response(response, 400)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_owner_properties_endpoint(container, mock_store):
    owner_id = ObjectId()
    mock_store.find = AsyncMock(return_value=[create_property_document(owner_id=owner_id)])

    response = await endpoints.get_owner_properties(create_request(params={"ownerId": str(owner_id)}))

    assert_valid_response(response, 200)
    assert len(response_json(response)["properties"]) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_infrastructure_errors_are_generic_500(container, mock_store):
    mock_store.aggregate = AsyncMock(side_effect=StoreError("Failed to aggregate properties: timeout"))

    response = await endpoints.list_properties(create_request())

    assert_valid_response(response, 500)
    assert "timeout" not in response["body"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_health_reports_store_status(container, mock_store):
    response = await health(create_request())
    assert_valid_response(response, 200)
    assert response_json(response)["status"] == "ok"

    mock_store.ping = AsyncMock(side_effect=StoreError("Document store unreachable"))
    response = await health(create_request())
    assert_valid_response(response, 503)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unavailable_health_echoes_correlation_id(container, mock_store):
    mock_store.ping = AsyncMock(side_effect=StoreError("Document store unreachable"))

    response = await health(create_request(headers={"X-Correlation-ID": "req_health"}))

    assert_valid_response(response, 503)
    assert response["headers"]["X-Correlation-ID"] == "req_health"
