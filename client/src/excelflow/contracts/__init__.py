from .endpoints import HTTP_METHODS, EndpointDefinition, EndpointStore, HttpMethod
from .reporting import Notifier, OperationReport, Severity
from .run import (
    TERMINAL_STATES,
    ArtifactDescriptor,
    RunHandle,
    RunInputs,
    RunResult,
    RunState,
    RunStatus,
)
from .saving import SaveTarget

__all__ = [
    "HTTP_METHODS",
    "HttpMethod",
    "EndpointDefinition",
    "EndpointStore",
    "Notifier",
    "OperationReport",
    "Severity",
    "TERMINAL_STATES",
    "ArtifactDescriptor",
    "RunHandle",
    "RunInputs",
    "RunResult",
    "RunState",
    "RunStatus",
    "SaveTarget",
]
