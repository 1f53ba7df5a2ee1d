from __future__ import annotations


class RunClientError(Exception):
    """Base class for every failure surfaced by the run-lifecycle client."""

    retryable: bool = False
    title: str = "Operation Failed"


class ConfigurationError(RunClientError):
    title = "API Config Error"


class EndpointUnresolved(ConfigurationError):
    def __init__(self, operation_path: str, method: str) -> None:
        self.operation_path = operation_path
        self.method = method
        super().__init__(
            f"Define '{operation_path}' ({method}) in the endpoint table before running this operation."
        )


class UnfilledPlaceholderError(ConfigurationError):
    def __init__(self, path: str, placeholders: list[str]) -> None:
        self.path = path
        self.placeholders = list(placeholders)
        names = ", ".join(self.placeholders)
        super().__init__(f"Endpoint path '{path}' has unfilled placeholders: {names}")


class ValidationError(RunClientError):
    title = "Validation Error"


class SelectionInvalid(ValidationError):
    title = "Selection Incomplete"


class RequestError(RunClientError):
    title = "Request Failed"


class RequestFailed(RequestError):
    def __init__(self, status_code: int, detail: str | None = None) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(detail or f"Error {status_code}")


class TransportError(RunClientError):
    title = "Service Unavailable"
    retryable = True


class ParseError(RunClientError):
    title = "Service Unavailable"
    retryable = True
