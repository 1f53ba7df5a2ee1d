from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal

from excelflow.configuration import DEFAULT_POLL_INTERVAL_S
from excelflow.contracts import RunHandle, RunStatus
from excelflow.contracts.wire import StatusResponse
from excelflow.errors import RunClientError
from excelflow.orchestration.operations import RUN_STATUS
from excelflow.service.client import JobServiceClient, parse_payload

logger = logging.getLogger("excelflow.poller")

PollState = Literal["idle", "polling", "completed", "failed", "error"]
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class PollOutcome:
    handle: RunHandle
    state: PollState
    status: RunStatus | None = None
    error: RunClientError | None = None
    cancelled: bool = False


StatusListener = Callable[[RunHandle, RunStatus], None]
OutcomeHandler = Callable[[PollOutcome], Awaitable[None] | None]


class StatusPoller:
    """
    Polls run status on a fixed interval until a terminal state.

    Transitions:
      idle -> polling on start(); immediate first fetch, no initial delay.
      polling -> completed | failed on the matching backend status.
      polling -> error on the first request, transport, parse or configuration
      failure, or a backend `error` status. Individual polls are never retried.
      queued/processing keep polling after a fixed sleep.

    Only one loop is active: start() and cancel() bump a generation counter and
    every response is checked against it before any state is touched.
    `history` holds the initial state followed by the state after each applied
    response.
    """

    def __init__(
        self,
        client: JobServiceClient,
        *,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        sleep: Sleep = asyncio.sleep,
        on_status: StatusListener | None = None,
        on_completed: OutcomeHandler | None = None,
        on_failed: OutcomeHandler | None = None,
        on_error: OutcomeHandler | None = None,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._client = client
        self._interval_s = interval_s
        self._sleep = sleep
        self._on_status = on_status
        self._on_completed = on_completed
        self._on_failed = on_failed
        self._on_error = on_error

        self._generation = 0
        self._task: asyncio.Task[PollOutcome] | None = None
        self._handle: RunHandle | None = None
        self._state: PollState = "idle"
        self._snapshot: RunStatus | None = None
        self._history: list[PollState] = ["idle"]

    @property
    def state(self) -> PollState:
        return self._state

    @property
    def handle(self) -> RunHandle | None:
        return self._handle

    @property
    def snapshot(self) -> RunStatus | None:
        """Latest applied status; replaced wholesale by every poll."""
        return self._snapshot

    @property
    def history(self) -> list[PollState]:
        return list(self._history)

    @property
    def task(self) -> asyncio.Task[PollOutcome] | None:
        return self._task

    def start(self, handle: RunHandle) -> asyncio.Task[PollOutcome]:
        """Cancel any active loop and start polling `handle`."""
        self.cancel()
        generation = self._generation
        self._handle = handle
        self._snapshot = None
        self._history = ["idle"]
        self._state = "polling"
        logger.info("Polling run %s every %.1fs", handle.run_id, self._interval_s)
        self._task = asyncio.create_task(self._run(handle, generation))
        return self._task

    async def run(self, handle: RunHandle) -> PollOutcome:
        return await self.start(handle)

    def cancel(self) -> None:
        """Abandon the active loop; late responses for it are discarded."""
        self._generation += 1
        task, self._task = self._task, None
        live = task is not None and not task.done()
        if live:
            task.cancel()
            logger.info("Cancelled polling for run %s", self._handle.run_id if self._handle else "?")
        # A terminal state whose hand-off was still running is abandoned too.
        if live or self._state == "polling":
            self._state = "idle"

    async def fetch_status(self, handle: RunHandle) -> RunStatus:
        """One status request, without touching poller state."""
        payload = await self._client.request_json(RUN_STATUS, params={"run_id": handle.run_id})
        response = parse_payload(StatusResponse, payload, RUN_STATUS)
        return RunStatus(
            run_id=response.run_id or handle.run_id,
            status=response.status,
            progress=response.progress,
            stage=response.current_stage,
            start_time=response.start_time,
            elapsed=response.elapsed,
        )

    async def _run(self, handle: RunHandle, generation: int) -> PollOutcome:
        while True:
            try:
                status = await self.fetch_status(handle)
            except RunClientError as exc:
                if not self._is_current(generation):
                    return PollOutcome(handle=handle, state="idle", cancelled=True)
                logger.warning("Status unavailable for run %s: %s", handle.run_id, exc)
                outcome = self._finish(handle, "error", status=self._snapshot, error=exc)
                await _invoke(self._on_error, outcome)
                return outcome

            if not self._is_current(generation):
                return PollOutcome(handle=handle, state="idle", cancelled=True)

            next_state = _next_state(status)
            self._apply(handle, status, next_state)

            if next_state == "polling":
                await self._sleep(self._interval_s)
                if not self._is_current(generation):
                    return PollOutcome(handle=handle, state="idle", cancelled=True)
                continue

            outcome = self._finish(handle, next_state, status=status)
            if next_state == "completed":
                await _invoke(self._on_completed, outcome)
            elif next_state == "failed":
                logger.warning("Run %s failed at stage %r", handle.run_id, status.stage)
                await _invoke(self._on_failed, outcome)
            else:
                logger.warning("Run %s reported an error at stage %r", handle.run_id, status.stage)
                await _invoke(self._on_error, outcome)
            return outcome

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _apply(self, handle: RunHandle, status: RunStatus, next_state: PollState) -> None:
        self._snapshot = status
        self._state = next_state
        self._history.append(next_state)
        if self._on_status is not None:
            self._on_status(handle, status)

    def _finish(
        self,
        handle: RunHandle,
        state: PollState,
        *,
        status: RunStatus | None,
        error: RunClientError | None = None,
    ) -> PollOutcome:
        if self._state != state:
            self._state = state
            self._history.append(state)
        return PollOutcome(handle=handle, state=state, status=status, error=error)


def _next_state(status: RunStatus) -> PollState:
    if status.status == "completed":
        return "completed"
    if status.status == "failed":
        return "failed"
    if status.status == "error":
        return "error"
    return "polling"


async def _invoke(handler: OutcomeHandler | None, outcome: PollOutcome) -> None:
    if handler is None:
        return
    result = handler(outcome)
    if inspect.isawaitable(result):
        await result
