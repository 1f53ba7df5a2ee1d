from .client import JobServiceClient, parse_payload
from .fakes import FakeJobService, ServiceCall

__all__ = [
    "JobServiceClient",
    "parse_payload",
    "FakeJobService",
    "ServiceCall",
]
