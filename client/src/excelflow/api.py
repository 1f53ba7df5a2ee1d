from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from pathlib import Path

import httpx

from excelflow.configuration import DEFAULT_POLL_INTERVAL_S, ClientConfig
from excelflow.contracts import (
    ArtifactDescriptor,
    Notifier,
    OperationReport,
    RunHandle,
    RunResult,
    RunStatus,
    SaveTarget,
)
from excelflow.errors import RunClientError, ValidationError
from excelflow.lifecycle.downloads import ArtifactDownloader, BulkArchiveDownloader
from excelflow.lifecycle.poller import PollOutcome, PollState, Sleep, StatusPoller
from excelflow.lifecycle.results import ResultsMapper
from excelflow.lifecycle.submitter import RunSubmitter
from excelflow.orchestration.registry import EndpointRegistry
from excelflow.reporting import (
    LoggingNotifier,
    info,
    report_from_error,
    status_unavailable,
    success,
)
from excelflow.runtime.downloads import LocalDirectoryTarget, build_run_download_dir
from excelflow.runtime.endpoint_store import YamlEndpointStore
from excelflow.service.client import JobServiceClient

logger = logging.getLogger("excelflow.api")

TargetFactory = Callable[[RunHandle], SaveTarget]


@dataclass(frozen=True, slots=True)
class RunSnapshot:
    """
    Caller-facing view of the current run.

    Never mutated in place: every update builds a new snapshot.
    """

    handle: RunHandle | None = None
    status: RunStatus | None = None
    result: RunResult | None = None
    artifacts: tuple[ArtifactDescriptor, ...] = ()


class RunController:
    """
    Drives one run at a time through submit, poll, results and downloads.

    Errors never escape an operation: each one is turned into an OperationReport,
    handed to the notifier and returned to the caller.
    """

    def __init__(
        self,
        client: JobServiceClient,
        *,
        notifier: Notifier | None = None,
        download_root: Path | None = None,
        target_factory: TargetFactory | None = None,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._notifier = notifier or LoggingNotifier()
        self._target_factory = target_factory or _directory_targets(download_root)
        self._submitter = RunSubmitter(client)
        self._results = ResultsMapper(client)
        self._poller = StatusPoller(
            client,
            interval_s=interval_s,
            sleep=sleep,
            on_status=self._on_status,
            on_completed=self._on_completed,
            on_failed=self._on_failed,
            on_error=self._on_error,
        )
        self._snapshot = RunSnapshot()

    @property
    def snapshot(self) -> RunSnapshot:
        return self._snapshot

    @property
    def poll_state(self) -> PollState:
        return self._poller.state

    @property
    def poller(self) -> StatusPoller:
        return self._poller

    async def start_run(self, template_ids: Sequence[str], vendor_id: str | None) -> OperationReport:
        """Submit a new run; any run being polled is abandoned first."""
        self.reset()
        try:
            handle = await self._submitter.submit(template_ids, vendor_id)
        except RunClientError as exc:
            return self._report(report_from_error("submit", exc, title="Pipeline Execution Failed"))

        self.track(handle)
        return self._report(
            success("submit", "Pipeline Queued", f"Run ID: {handle.run_id}. Status: queued.")
        )

    def track(self, handle: RunHandle) -> None:
        """Start polling an existing run, replacing whatever was tracked before."""
        self._poller.cancel()
        self._snapshot = RunSnapshot(handle=handle)
        self._poller.start(handle)

    async def wait(self) -> RunSnapshot:
        """Wait for the active poll loop, including its results hand-off."""
        task = self._poller.task
        if task is not None:
            await asyncio.wait({task})
        return self._snapshot

    async def refresh(self) -> OperationReport:
        """Fetch status once; load results when the run has completed."""
        handle = self._snapshot.handle
        if handle is None:
            return self._report(
                report_from_error("refresh", ValidationError("There is no run to refresh."))
            )
        try:
            status = await self._poller.fetch_status(handle)
        except RunClientError as exc:
            return self._report(status_unavailable("refresh", handle.run_id, exc))

        if not self._is_current(handle):
            return self._report(
                info("refresh", "Run Replaced", f"Run {handle.run_id} is no longer active.")
            )
        self._snapshot = replace(self._snapshot, status=status)
        if status.status == "completed":
            await self._load_results(handle)
        return self._report(
            info(
                "refresh",
                "Status Refreshed",
                f"Run {handle.run_id}: {status.status} ({status.progress}%) {status.stage}".rstrip(),
            )
        )

    def reset(self) -> None:
        self._poller.cancel()
        self._snapshot = RunSnapshot()

    async def download(self, download_key: str) -> OperationReport:
        handle = self._snapshot.handle
        if handle is None:
            return self._report(
                report_from_error("download", ValidationError("There is no run to download from."))
            )
        try:
            downloader = ArtifactDownloader(self._client, self._target_factory(handle))
            path = await downloader.download(handle, download_key)
        except (RunClientError, OSError) as exc:
            return self._report(_download_failure("download", exc, "Download Failed"))
        return self._report(success("download", "Download Complete", f"{download_key} saved to {path}"))

    async def download_all(self) -> OperationReport:
        handle = self._snapshot.handle
        if handle is None:
            return self._report(
                report_from_error("download_all", ValidationError("There is no run to download from."))
            )
        try:
            downloader = BulkArchiveDownloader(self._client, self._target_factory(handle))
            path = await downloader.download_all(handle)
        except (RunClientError, OSError) as exc:
            return self._report(_download_failure("download_all", exc, "Archive Download Failed"))
        return self._report(
            success("download_all", "Archive Download Complete", f"Zip for run {handle.run_id} saved to {path}")
        )

    def _is_current(self, handle: RunHandle) -> bool:
        return self._snapshot.handle == handle

    def _on_status(self, handle: RunHandle, status: RunStatus) -> None:
        if self._is_current(handle):
            self._snapshot = replace(self._snapshot, status=status)

    async def _on_completed(self, outcome: PollOutcome) -> None:
        await self._load_results(outcome.handle)

    def _on_failed(self, outcome: PollOutcome) -> None:
        stage = outcome.status.stage if outcome.status else "unknown"
        self._report(
            report_from_error(
                "poll",
                RunClientError(f"Run {outcome.handle.run_id} failed. Stage: {stage}"),
                title="Processing Failed",
            )
        )

    def _on_error(self, outcome: PollOutcome) -> None:
        if outcome.error is not None:
            self._report(status_unavailable("poll", outcome.handle.run_id, outcome.error))
            return
        stage = outcome.status.stage if outcome.status else "unknown"
        self._report(
            report_from_error(
                "poll",
                RunClientError(f"Run {outcome.handle.run_id} reported an error. Stage: {stage}"),
                title="Processing Error",
            )
        )

    async def _load_results(self, handle: RunHandle) -> None:
        try:
            result = await self._results.fetch(handle)
        except RunClientError as exc:
            if self._is_current(handle):
                self._snapshot = replace(self._snapshot, result=None, artifacts=())
                self._report(report_from_error("results", exc, title="Error Fetching Results"))
            return

        if not self._is_current(handle):
            logger.info("Discarding results of abandoned run %s", handle.run_id)
            return
        artifacts = tuple(self._results.flatten(result))
        self._snapshot = replace(self._snapshot, result=result, artifacts=artifacts)
        self._report(
            success(
                "results",
                "Results Loaded",
                f"Results for run {handle.run_id} fetched: {len(artifacts)} artifact(s).",
            )
        )

    def _report(self, report: OperationReport) -> OperationReport:
        try:
            self._notifier.notify(report)
        except Exception:
            logger.warning("Failed to deliver report %r", report.title, exc_info=True)
        return report


def _download_failure(operation: str, exc: Exception, title: str) -> OperationReport:
    if isinstance(exc, RunClientError):
        return report_from_error(operation, exc, title=title)
    return OperationReport(operation=operation, severity="error", title=title, message=str(exc))


def _directory_targets(download_root: Path | None) -> TargetFactory:
    def factory(handle: RunHandle) -> SaveTarget:
        return LocalDirectoryTarget(build_run_download_dir(handle.run_id, download_root=download_root))

    return factory


def build_registry(config: ClientConfig) -> EndpointRegistry:
    return EndpointRegistry(store=YamlEndpointStore(config.storage.endpoints_path))


async def execute_run(
    config: ClientConfig,
    *,
    template_ids: Sequence[str],
    vendor_id: str | None,
    download_all: bool = False,
    notifier: Notifier | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> RunSnapshot:
    """Submit a run, poll it to a terminal state and optionally fetch the archive."""
    registry = build_registry(config)
    async with JobServiceClient.from_config(config, registry=registry, transport=transport) as client:
        controller = RunController(
            client,
            notifier=notifier,
            download_root=config.storage.download_dir,
            interval_s=config.polling.interval_s,
        )
        report = await controller.start_run(template_ids, vendor_id)
        if not report.ok:
            return controller.snapshot
        snapshot = await controller.wait()
        if download_all and snapshot.result is not None:
            await controller.download_all()
        return controller.snapshot
