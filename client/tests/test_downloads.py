import httpx
import pytest

from excelflow.contracts import RunHandle
from excelflow.errors import RequestFailed, TransportError, ValidationError
from excelflow.lifecycle.downloads import ArtifactDownloader, BulkArchiveDownloader, archive_name
from excelflow.orchestration.operations import SUBMIT_RUN
from excelflow.orchestration.registry import EndpointRegistry
from excelflow.runtime.downloads import LocalDirectoryTarget
from excelflow.service.client import JobServiceClient
from excelflow.service.fakes import FakeJobService
from excelflow.testkit.dummies import InMemoryEndpointStore, MemorySaveTarget


def _client(fake: FakeJobService) -> JobServiceClient:
    registry = EndpointRegistry(store=InMemoryEndpointStore())
    return JobServiceClient(registry=registry, base_url="http://testserver", transport=fake.transport())


async def _submit(client: JobServiceClient) -> RunHandle:
    payload = await client.request_json(SUBMIT_RUN, json={"templates": ["t1"], "vendor": "v1"})
    return RunHandle(run_id=payload["run_id"])


@pytest.mark.asyncio
async def test_download_saves_artifact_under_its_key(tmp_path):
    fake = FakeJobService(files={"tmplA_excel_1.xlsx": b"xlsx-bytes"})
    target = LocalDirectoryTarget(tmp_path)

    async with _client(fake) as client:
        handle = await _submit(client)
        path = await ArtifactDownloader(client, target).download(handle, "tmplA_excel_1.xlsx")

    assert path == tmp_path / "tmplA_excel_1.xlsx"
    assert path.read_bytes() == b"xlsx-bytes"
    assert fake.calls[-1].path == "/download/run_1/tmplA_excel_1.xlsx"


@pytest.mark.asyncio
async def test_download_rejects_empty_key():
    fake = FakeJobService()
    target = MemorySaveTarget()

    async with _client(fake) as client:
        with pytest.raises(ValidationError):
            await ArtifactDownloader(client, target).download(RunHandle("run_1"), " ")

    assert fake.calls == []


@pytest.mark.asyncio
async def test_missing_file_surfaces_detail_and_writes_nothing():
    fake = FakeJobService()
    target = MemorySaveTarget()

    async with _client(fake) as client:
        handle = await _submit(client)
        with pytest.raises(RequestFailed, match="File gone.xlsx not found"):
            await ArtifactDownloader(client, target).download(handle, "gone.xlsx")

    assert target.files == {}
    assert target.open_handles == 0


@pytest.mark.asyncio
async def test_failed_write_releases_target():
    fake = FakeJobService(files={"out.json": b"{}"})
    target = MemorySaveTarget(fail_on_write=True)

    async with _client(fake) as client:
        handle = await _submit(client)
        with pytest.raises(OSError):
            await ArtifactDownloader(client, target).download(handle, "out.json")

    assert target.open_handles == 0
    assert target.discarded == ["out.json"]
    assert target.files == {}


@pytest.mark.asyncio
async def test_archive_is_saved_with_run_specific_name(tmp_path):
    archive = b"PK\x03\x04fake-zip"
    fake = FakeJobService(archive=archive)
    target = LocalDirectoryTarget(tmp_path)

    async with _client(fake) as client:
        handle = await _submit(client)
        path = await BulkArchiveDownloader(client, target).download_all(handle)

    assert archive_name("run_1") == "archive_run_1.zip"
    assert path == tmp_path / "archive_run_1.zip"
    assert path.read_bytes() == archive
    assert fake.calls[-1].path == "/download/zip/run_1"


@pytest.mark.asyncio
async def test_archive_transport_failure_leaves_no_file(tmp_path):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    registry = EndpointRegistry(store=InMemoryEndpointStore())
    target = LocalDirectoryTarget(tmp_path)

    async with JobServiceClient(
        registry=registry, base_url="http://testserver", transport=httpx.MockTransport(handler)
    ) as client:
        with pytest.raises(TransportError):
            await BulkArchiveDownloader(client, target).download_all(RunHandle("run_1"))

    assert list(tmp_path.iterdir()) == []
