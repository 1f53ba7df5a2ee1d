from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from excelflow.configuration import stable_hash
from excelflow.contracts import ArtifactDescriptor, RunHandle, RunInputs, RunResult
from excelflow.contracts.wire import ResultsResponse
from excelflow.orchestration.operations import RUN_RESULTS
from excelflow.service.client import JobServiceClient, parse_payload

logger = logging.getLogger("excelflow.results")

_SEPARATORS = re.compile(r"[_\-\s]+")


class ResultsMapper:
    """Fetches the result document of a completed run and lists its artifacts."""

    def __init__(self, client: JobServiceClient) -> None:
        self._client = client

    async def fetch(self, handle: RunHandle) -> RunResult:
        payload = await self._client.request_json(RUN_RESULTS, params={"run_id": handle.run_id})
        response = parse_payload(ResultsResponse, payload, RUN_RESULTS)
        return RunResult(
            run_id=response.run_id or handle.run_id,
            status=response.status,
            completion_time=response.completion_time,
            inputs=RunInputs(templates=tuple(response.templates), vendor=response.vendor),
            outputs=response.outputs,
            metrics=response.metrics,
        )

    def flatten(self, result: RunResult) -> list[ArtifactDescriptor]:
        return flatten_outputs(result.outputs, run_id=result.run_id)


def flatten_outputs(
    outputs: Mapping[str, Mapping[str, Any]], *, run_id: str
) -> list[ArtifactDescriptor]:
    """
    Flatten {source: {kind: backend_path}} into artifact descriptors.

    Order follows the mappings as received, outer then inner. Entries whose path is
    not a string or has no basename are dropped and logged.
    """
    artifacts: list[ArtifactDescriptor] = []
    for source_name, kinds in outputs.items():
        for kind, backend_path in kinds.items():
            filename = artifact_basename(backend_path) if isinstance(backend_path, str) else ""
            if not filename:
                logger.warning(
                    "Dropping artifact %s/%s of run %s: no file name in %r",
                    source_name,
                    kind,
                    run_id,
                    backend_path,
                )
                continue
            artifacts.append(
                ArtifactDescriptor(
                    id=f"{run_id}-{stable_hash([source_name, kind, filename])}",
                    display_name=filename,
                    download_key=filename,
                    kind=kind,
                    origin_source=source_name,
                )
            )
    return artifacts


def artifact_basename(backend_path: str) -> str:
    return backend_path.replace("\\", "/").rsplit("/", 1)[-1]


def humanize_key(key: str) -> str:
    """Display label for a backend key: separators become spaces, words capitalised."""
    words = _SEPARATORS.sub(" ", key).split()
    return " ".join(word[:1].upper() + word[1:] for word in words)


def display_metrics(metrics: Mapping[str, Any]) -> list[tuple[str, Any]]:
    return [(humanize_key(key), value) for key, value in metrics.items()]
