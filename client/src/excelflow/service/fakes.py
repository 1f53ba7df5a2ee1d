from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

StatusStep = str | httpx.Response | Exception


@dataclass(frozen=True, slots=True)
class ServiceCall:
    """Record of a request seen by the fake service, for assertions in tests."""

    method: str
    path: str
    body: Any = None


@dataclass(slots=True)
class _FakeRun:
    run_id: str
    templates: list[str]
    vendor: str
    steps: list[StatusStep]
    polls: int = 0


class FakeJobService:
    """
    In-memory job service speaking the reference wire format over httpx.MockTransport.

    Routes follow `default_endpoint_definitions()`. Status responses are scripted per
    run: each poll consumes the next step and the last step repeats. A step is a
    status string, a ready-made `httpx.Response`, or an exception to raise.
    """

    def __init__(
        self,
        *,
        statuses: Sequence[StatusStep] = ("completed",),
        outputs: Mapping[str, Mapping[str, Any]] | None = None,
        metrics: Mapping[str, Any] | None = None,
        files: Mapping[str, bytes] | None = None,
        archive: bytes = b"PK\x05\x06" + b"\x00" * 18,
        templates: Sequence[str] = (),
        vendors: Sequence[str] = (),
    ) -> None:
        self._default_steps = list(statuses)
        self._scripts: dict[str, list[StatusStep]] = {}
        self._outputs = {key: dict(value) for key, value in (outputs or {}).items()}
        self._metrics = dict(metrics or {})
        self._files = dict(files or {})
        self._archive = archive
        self._templates = list(templates)
        self._vendors = list(vendors)
        self._runs: dict[str, _FakeRun] = {}
        self._run_counter = 0
        self._calls: list[ServiceCall] = []
        self._failures: dict[tuple[str, str], httpx.Response] = {}
        self._gates: dict[str, asyncio.Event] = {}

    @property
    def calls(self) -> list[ServiceCall]:
        """Return the recorded calls in order."""
        return list(self._calls)

    @property
    def uploaded_templates(self) -> list[str]:
        return list(self._templates)

    @property
    def uploaded_vendors(self) -> list[str]:
        return list(self._vendors)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def script_run(self, run_id: str, statuses: Sequence[StatusStep]) -> None:
        """Script the status sequence for the run that will be created with `run_id`."""
        self._scripts[run_id] = list(statuses)

    def fail(self, method: str, path: str, status_code: int, detail: Any = None) -> None:
        """Answer `method path` with an error response carrying `detail`."""
        body = {} if detail is None else {"detail": detail}
        self._failures[(method, path)] = httpx.Response(status_code, json=body)

    def hold_status(self, run_id: str) -> asyncio.Event:
        """Block status responses for `run_id` until the returned event is set."""
        gate = asyncio.Event()
        self._gates[run_id] = gate
        return gate

    def status_polls(self, run_id: str) -> int:
        run = self._runs.get(run_id)
        return 0 if run is None else run.polls

    def count(self, method: str, path_prefix: str) -> int:
        return sum(
            1 for call in self._calls if call.method == method and call.path.startswith(path_prefix)
        )

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = _decode_body(request)
        self._calls.append(ServiceCall(method=request.method, path=path, body=body))

        failure = self._failures.get((request.method, path))
        if failure is not None:
            return httpx.Response(failure.status_code, content=failure.content, headers=failure.headers)

        parts = [part for part in path.split("/") if part]
        if request.method == "POST" and parts == ["process"]:
            return self._submit(body)
        if request.method == "GET" and len(parts) == 2 and parts[0] == "status":
            return await self._status(parts[1], request)
        if request.method == "GET" and len(parts) == 2 and parts[0] == "results":
            return self._results(parts[1])
        if request.method == "GET" and len(parts) == 3 and parts[:2] == ["download", "zip"]:
            return self._download_archive(parts[2])
        if request.method == "GET" and len(parts) == 3 and parts[0] == "download":
            return self._download_file(parts[1], parts[2])
        if request.method == "GET" and parts == ["template", "list"]:
            return httpx.Response(200, json={"templates": list(self._templates)})
        if request.method == "GET" and parts == ["vendor", "list"]:
            return httpx.Response(200, json={"vendors": list(self._vendors)})
        if request.method == "POST" and parts == ["template", "upload"]:
            return self._upload(request, self._templates)
        if request.method == "POST" and parts == ["vendor", "upload"]:
            return self._upload(request, self._vendors)
        return httpx.Response(404, json={"detail": "Not Found"})

    def _submit(self, body: Any) -> httpx.Response:
        if not isinstance(body, Mapping) or not body.get("templates") or not body.get("vendor"):
            return httpx.Response(422, json={"detail": [{"msg": "templates and vendor are required"}]})
        self._run_counter += 1
        run_id = f"run_{self._run_counter}"
        steps = self._scripts.pop(run_id, None) or list(self._default_steps)
        self._runs[run_id] = _FakeRun(
            run_id=run_id,
            templates=list(body["templates"]),
            vendor=str(body["vendor"]),
            steps=steps,
        )
        return httpx.Response(
            200, json={"run_id": run_id, "status": "queued", "message": "Run queued"}
        )

    async def _status(self, run_id: str, request: httpx.Request) -> httpx.Response:
        run = self._runs.get(run_id)
        if run is None:
            return httpx.Response(404, json={"detail": f"Run {run_id} not found"})
        gate = self._gates.get(run_id)
        if gate is not None:
            await gate.wait()

        index = min(run.polls, len(run.steps) - 1)
        step = run.steps[index]
        run.polls += 1
        if isinstance(step, Exception):
            if isinstance(step, httpx.RequestError):
                step.request = request
            raise step
        if isinstance(step, httpx.Response):
            return step
        progress = 100 if step == "completed" else min(90, run.polls * 25)
        return httpx.Response(
            200,
            json={
                "run_id": run_id,
                "status": step,
                "progress": progress,
                "current_stage": _stage_for(step),
                "start_time": "2024-01-01T00:00:00Z",
                "elapsed": f"{run.polls * 3}s",
            },
        )

    def _results(self, run_id: str) -> httpx.Response:
        run = self._runs.get(run_id)
        if run is None:
            return httpx.Response(404, json={"detail": f"Run {run_id} not found"})
        return httpx.Response(
            200,
            json={
                "run_id": run_id,
                "status": "completed",
                "completion_time": "2024-01-01T00:05:00Z",
                "templates": run.templates,
                "vendor": run.vendor,
                "outputs": self._outputs,
                "metrics": self._metrics,
            },
        )

    def _download_file(self, run_id: str, filename: str) -> httpx.Response:
        if run_id not in self._runs or filename not in self._files:
            return httpx.Response(404, json={"detail": f"File {filename} not found"})
        return httpx.Response(200, content=self._files[filename])

    def _download_archive(self, run_id: str) -> httpx.Response:
        if run_id not in self._runs:
            return httpx.Response(404, json={"detail": f"Run {run_id} not found"})
        return httpx.Response(
            200, content=self._archive, headers={"content-type": "application/zip"}
        )

    def _upload(self, request: httpx.Request, bucket: list[str]) -> httpx.Response:
        filename = _multipart_filename(request.content)
        if filename is None:
            return httpx.Response(422, json={"detail": "file is required"})
        bucket.append(filename)
        return httpx.Response(200, json={"filename": filename, "message": "Uploaded"})


def _stage_for(status: str) -> str:
    return {
        "queued": "Waiting for worker",
        "processing": "Filling templates",
        "completed": "Done",
        "failed": "Template mapping",
        "error": "Worker crashed",
    }.get(status, status)


def _decode_body(request: httpx.Request) -> Any:
    if request.headers.get("content-type", "").startswith("application/json"):
        return json.loads(request.content or b"null")
    return None


def _multipart_filename(content: bytes) -> str | None:
    marker = b'filename="'
    start = content.find(marker)
    if start < 0:
        return None
    start += len(marker)
    end = content.find(b'"', start)
    return content[start:end].decode("utf-8")
