import logging

import pytest

from excelflow.contracts import RunHandle, RunResult
from excelflow.lifecycle.results import (
    ResultsMapper,
    artifact_basename,
    display_metrics,
    flatten_outputs,
    humanize_key,
)
from excelflow.orchestration.operations import SUBMIT_RUN
from excelflow.orchestration.registry import EndpointRegistry
from excelflow.service.client import JobServiceClient
from excelflow.service.fakes import FakeJobService
from excelflow.testkit.dummies import InMemoryEndpointStore

_OUTPUTS = {
    "tmplA": {"excel": "/srv/out/tmplA_excel_1.xlsx"},
    "tmplB": {"json": "/srv/out/tmplB_json_1.json"},
}


def test_flatten_outputs_in_received_order():
    artifacts = flatten_outputs(_OUTPUTS, run_id="run_1")

    assert [(item.origin_source, item.kind, item.download_key) for item in artifacts] == [
        ("tmplA", "excel", "tmplA_excel_1.xlsx"),
        ("tmplB", "json", "tmplB_json_1.json"),
    ]
    assert [item.display_name for item in artifacts] == ["tmplA_excel_1.xlsx", "tmplB_json_1.json"]


def test_artifact_ids_are_unique_and_stable():
    first = flatten_outputs(_OUTPUTS, run_id="run_1")
    again = flatten_outputs(_OUTPUTS, run_id="run_1")
    other_run = flatten_outputs(_OUTPUTS, run_id="run_2")

    assert len({item.id for item in first}) == 2
    assert [item.id for item in first] == [item.id for item in again]
    assert {item.id for item in first}.isdisjoint(item.id for item in other_run)
    assert all(item.id.startswith("run_1-") for item in first)


def test_same_filename_under_two_kinds_gets_distinct_ids():
    artifacts = flatten_outputs(
        {"tmplA": {"excel": "/a/out.bin", "raw": "/b/out.bin"}}, run_id="run_1"
    )

    assert [item.download_key for item in artifacts] == ["out.bin", "out.bin"]
    assert artifacts[0].id != artifacts[1].id


def test_entries_without_a_file_name_are_dropped(caplog):
    with caplog.at_level(logging.WARNING, logger="excelflow.results"):
        artifacts = flatten_outputs({"tmplA": {"excel": "/srv/out/", "json": "a.json"}}, run_id="r")

    assert [item.download_key for item in artifacts] == ["a.json"]
    assert "Dropping artifact tmplA/excel" in caplog.text


def test_non_string_paths_are_dropped(caplog):
    with caplog.at_level(logging.WARNING, logger="excelflow.results"):
        artifacts = flatten_outputs(
            {"tmplA": {"excel": "/runs/r1/a.xlsx", "json": None, "csv": 7}}, run_id="r1"
        )

    assert [item.download_key for item in artifacts] == ["a.xlsx"]
    assert "Dropping artifact tmplA/json" in caplog.text
    assert "Dropping artifact tmplA/csv" in caplog.text


def test_empty_outputs_yield_no_artifacts():
    assert flatten_outputs({}, run_id="r") == []


def test_artifact_basename_handles_windows_separators():
    assert artifact_basename("C:\\jobs\\out\\report.xlsx") == "report.xlsx"
    assert artifact_basename("report.xlsx") == "report.xlsx"


@pytest.mark.parametrize(
    ("key", "label"),
    [
        ("excel", "Excel"),
        ("total_rows", "Total Rows"),
        ("mapped-columns", "Mapped Columns"),
        ("processingTime", "ProcessingTime"),
    ],
)
def test_humanize_key(key, label):
    assert humanize_key(key) == label


def test_display_metrics_keeps_values_as_is():
    assert display_metrics({"total_rows": 120, "accuracy": "98%"}) == [
        ("Total Rows", 120),
        ("Accuracy", "98%"),
    ]


@pytest.mark.asyncio
async def test_fetch_maps_result_document():
    fake = FakeJobService(outputs=_OUTPUTS, metrics={"total_rows": 10})
    registry = EndpointRegistry(store=InMemoryEndpointStore())

    async with JobServiceClient(
        registry=registry, base_url="http://testserver", transport=fake.transport()
    ) as client:
        payload = await client.request_json(SUBMIT_RUN, json={"templates": ["tmplA"], "vendor": "v.xlsx"})
        mapper = ResultsMapper(client)
        result = await mapper.fetch(RunHandle(run_id=payload["run_id"]))

    assert isinstance(result, RunResult)
    assert result.inputs.templates == ("tmplA",)
    assert result.inputs.vendor == "v.xlsx"
    assert result.metrics == {"total_rows": 10}
    assert [item.download_key for item in mapper.flatten(result)] == [
        "tmplA_excel_1.xlsx",
        "tmplB_json_1.json",
    ]


@pytest.mark.asyncio
async def test_fetch_keeps_document_with_null_output_path():
    fake = FakeJobService(outputs={"tmplA": {"excel": "/runs/r1/a.xlsx", "json": None}})
    registry = EndpointRegistry(store=InMemoryEndpointStore())

    async with JobServiceClient(
        registry=registry, base_url="http://testserver", transport=fake.transport()
    ) as client:
        payload = await client.request_json(SUBMIT_RUN, json={"templates": ["tmplA"], "vendor": "v.xlsx"})
        mapper = ResultsMapper(client)
        result = await mapper.fetch(RunHandle(run_id=payload["run_id"]))

    assert [item.download_key for item in mapper.flatten(result)] == ["a.xlsx"]
