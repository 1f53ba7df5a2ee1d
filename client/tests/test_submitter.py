import pytest

from excelflow.contracts import RunHandle
from excelflow.errors import RequestFailed, SelectionInvalid
from excelflow.lifecycle.submitter import RunSubmitter, validate_selection
from excelflow.orchestration.registry import EndpointRegistry
from excelflow.service.client import JobServiceClient
from excelflow.service.fakes import FakeJobService
from excelflow.testkit.dummies import InMemoryEndpointStore


def _client(fake: FakeJobService) -> JobServiceClient:
    registry = EndpointRegistry(store=InMemoryEndpointStore())
    return JobServiceClient(registry=registry, base_url="http://testserver", transport=fake.transport())


@pytest.mark.parametrize(
    ("templates", "vendor", "message"),
    [
        ([], "v1", "Please select at least one template."),
        (["t1"], None, "Please select a vendor file."),
        ([""], " ", "Please select at least one template and select a vendor file."),
    ],
)
def test_validate_selection_messages(templates, vendor, message):
    with pytest.raises(SelectionInvalid) as excinfo:
        validate_selection(templates, vendor)

    assert str(excinfo.value) == message


@pytest.mark.asyncio
async def test_submit_returns_handle_after_one_request():
    fake = FakeJobService()

    async with _client(fake) as client:
        handle = await RunSubmitter(client).submit(["tmplA", "tmplB"], "vendor.xlsx")

    assert handle == RunHandle(run_id="run_1")
    assert len(fake.calls) == 1
    assert fake.calls[0].body == {"templates": ["tmplA", "tmplB"], "vendor": "vendor.xlsx"}


@pytest.mark.asyncio
async def test_invalid_selection_sends_nothing():
    fake = FakeJobService()

    async with _client(fake) as client:
        with pytest.raises(SelectionInvalid):
            await RunSubmitter(client).submit([], "vendor.xlsx")

    assert fake.calls == []


@pytest.mark.asyncio
async def test_submit_surfaces_server_detail_without_retrying():
    fake = FakeJobService()
    fake.fail("POST", "/process", 400, "Vendor file 'v.xlsx' not found")

    async with _client(fake) as client:
        with pytest.raises(RequestFailed, match="Vendor file 'v.xlsx' not found"):
            await RunSubmitter(client).submit(["t1"], "v.xlsx")

    assert fake.count("POST", "/process") == 1
