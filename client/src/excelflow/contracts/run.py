from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

RunState = Literal["queued", "processing", "completed", "failed", "error"]
TERMINAL_STATES: frozenset[str] = frozenset({"completed", "failed", "error"})


@dataclass(frozen=True, slots=True)
class RunHandle:
    """Opaque reference to one remote run. The id is never parsed."""

    run_id: str


@dataclass(frozen=True, slots=True)
class RunStatus:
    """
    Snapshot produced by one status poll.

    Each poll yields a new instance that fully replaces the previous one.
    """

    run_id: str
    status: RunState
    progress: int = 0
    stage: str = ""
    start_time: str | None = None
    elapsed: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES


@dataclass(frozen=True, slots=True)
class RunInputs:
    templates: Sequence[str] = field(default_factory=tuple)
    vendor: str = ""


@dataclass(frozen=True, slots=True)
class RunResult:
    """Final result document of a completed run."""

    run_id: str
    status: str
    completion_time: str | None = None
    inputs: RunInputs = field(default_factory=RunInputs)

    # {source_name: {artifact_kind: backend_path}}, in received order
    outputs: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    # Opaque values, displayed as-is
    metrics: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ArtifactDescriptor:
    id: str
    display_name: str
    download_key: str
    kind: str
    origin_source: str
