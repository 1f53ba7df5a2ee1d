from __future__ import annotations

import asyncio
import io
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from excelflow.contracts import EndpointDefinition, OperationReport
from excelflow.runtime.downloads import safe_filename
from excelflow.runtime.endpoint_store import default_endpoint_definitions


class RecordingNotifier:
    def __init__(self) -> None:
        self.reports: list[OperationReport] = []

    def notify(self, report: OperationReport) -> None:
        self.reports.append(report)

    def titles(self) -> list[str]:
        return [report.title for report in self.reports]

    def errors(self) -> list[OperationReport]:
        return [report for report in self.reports if report.severity == "error"]


class InstantSleep:
    """Stand-in for asyncio.sleep that records delays and only yields control."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


class BlockingSleep:
    """Sleep that never returns until released; lets tests hold a poll loop mid-wait."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.entered = asyncio.Event()
        self._release = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.entered.set()
        await self._release.wait()

    def release(self) -> None:
        self._release.set()


class InMemoryEndpointStore:
    def __init__(self, definitions: Sequence[EndpointDefinition] | None = None) -> None:
        self._definitions = list(
            default_endpoint_definitions() if definitions is None else definitions
        )
        self.load_count = 0

    def load(self) -> list[EndpointDefinition]:
        self.load_count += 1
        return list(self._definitions)

    def save(self, definitions: Sequence[EndpointDefinition]) -> None:
        self._definitions = list(definitions)


class MemorySaveTarget:
    """SaveTarget keeping committed payloads in memory and tracking open handles."""

    def __init__(self, *, fail_on_write: bool = False) -> None:
        self.files: dict[str, bytes] = {}
        self.open_handles = 0
        self.discarded: list[str] = []
        self._fail_on_write = fail_on_write

    def committed_path(self, suggested_name: str) -> Path:
        return Path("memory") / safe_filename(suggested_name)

    @contextmanager
    def open(self, suggested_name: str) -> Iterator[BinaryIO]:
        name = safe_filename(suggested_name)
        buffer = _FailingBuffer() if self._fail_on_write else io.BytesIO()
        self.open_handles += 1
        committed = False
        try:
            yield buffer
            self.files[name] = buffer.getvalue()
            committed = True
        finally:
            self.open_handles -= 1
            if not committed:
                self.discarded.append(name)
            buffer.close()


class _FailingBuffer(io.BytesIO):
    def write(self, data) -> int:  # type: ignore[override]
        raise OSError("No space left on device")
