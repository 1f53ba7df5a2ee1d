import httpx
import pytest

from excelflow.contracts import EndpointDefinition
from excelflow.contracts.wire import StatusResponse
from excelflow.errors import EndpointUnresolved, ParseError, RequestFailed, TransportError
from excelflow.orchestration.operations import RUN_STATUS, SUBMIT_RUN
from excelflow.orchestration.registry import EndpointRegistry
from excelflow.service.client import JobServiceClient, parse_payload
from excelflow.service.fakes import FakeJobService
from excelflow.testkit.dummies import InMemoryEndpointStore


def _client(transport: httpx.AsyncBaseTransport, definitions=None) -> JobServiceClient:
    registry = EndpointRegistry(store=InMemoryEndpointStore(definitions))
    return JobServiceClient(registry=registry, base_url="http://testserver", transport=transport)


@pytest.mark.asyncio
async def test_request_json_posts_to_resolved_path():
    fake = FakeJobService()

    async with _client(fake.transport()) as client:
        payload = await client.request_json(SUBMIT_RUN, json={"templates": ["t1"], "vendor": "v1"})

    assert payload["run_id"] == "run_1"
    assert fake.calls[0].path == "/process"
    assert fake.calls[0].body == {"templates": ["t1"], "vendor": "v1"}


@pytest.mark.asyncio
async def test_unresolved_endpoint_fails_before_any_request():
    fake = FakeJobService()

    async with _client(fake.transport(), definitions=[]) as client:
        with pytest.raises(EndpointUnresolved):
            await client.request_json(SUBMIT_RUN, json={})

    assert fake.calls == []


@pytest.mark.asyncio
async def test_string_detail_becomes_error_message():
    fake = FakeJobService()
    fake.fail("POST", "/process", 400, "Template 'x' not found")

    async with _client(fake.transport()) as client:
        with pytest.raises(RequestFailed) as excinfo:
            await client.request_json(SUBMIT_RUN, json={"templates": ["x"], "vendor": "v"})

    assert excinfo.value.status_code == 400
    assert str(excinfo.value) == "Template 'x' not found"


@pytest.mark.asyncio
async def test_validation_detail_list_is_joined():
    fake = FakeJobService()

    async with _client(fake.transport()) as client:
        with pytest.raises(RequestFailed) as excinfo:
            await client.request_json(SUBMIT_RUN, json={"templates": []})

    assert excinfo.value.status_code == 422
    assert str(excinfo.value) == "templates and vendor are required"


@pytest.mark.asyncio
async def test_missing_detail_falls_back_to_status_code():
    fake = FakeJobService()
    fake.fail("POST", "/process", 503)

    async with _client(fake.transport()) as client:
        with pytest.raises(RequestFailed, match="Error 503"):
            await client.request_json(SUBMIT_RUN, json={"templates": ["t"], "vendor": "v"})


@pytest.mark.asyncio
async def test_connection_failure_is_a_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError) as excinfo:
            await client.request_json(SUBMIT_RUN, json={})

    assert excinfo.value.retryable is True


@pytest.mark.asyncio
async def test_non_json_body_is_a_parse_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"<html>"))

    async with _client(transport) as client:
        with pytest.raises(ParseError):
            await client.request_json(RUN_STATUS, params={"run_id": "r1"})


@pytest.mark.asyncio
async def test_stream_raises_before_yielding_on_error_status():
    fake = FakeJobService()

    async with _client(fake.transport()) as client:
        with pytest.raises(RequestFailed, match="Run r9 not found"):
            async with client.stream(RUN_STATUS, params={"run_id": "r9"}):
                pytest.fail("error responses must not be yielded")


def test_parse_payload_rejects_unknown_status():
    with pytest.raises(ParseError):
        parse_payload(StatusResponse, {"run_id": "r1", "status": "paused"}, RUN_STATUS)


def test_client_rejects_both_http_client_and_transport():
    registry = EndpointRegistry(store=InMemoryEndpointStore([EndpointDefinition("/process", "POST")]))

    with pytest.raises(ValueError):
        JobServiceClient(
            registry=registry,
            http_client=httpx.AsyncClient(),
            transport=httpx.MockTransport(lambda request: httpx.Response(200)),
        )
