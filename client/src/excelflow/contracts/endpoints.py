from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

HttpMethod = Literal["GET", "POST", "DELETE"]
HTTP_METHODS: tuple[HttpMethod, ...] = ("GET", "POST", "DELETE")

_PLACEHOLDER_START = re.compile(r"[:{]")


@dataclass(frozen=True, slots=True)
class EndpointDefinition:
    """
    One row of the user-maintained endpoint table.

    Identity is the (path_template, method) pair; description is informational.
    """

    path_template: str
    method: HttpMethod
    description: str = ""

    @property
    def key(self) -> tuple[str, str]:
        return (self.path_template, self.method)

    @property
    def static_prefix(self) -> str:
        """Text of the template before its first placeholder."""
        match = _PLACEHOLDER_START.search(self.path_template)
        if match is None:
            return self.path_template
        return self.path_template[: match.start()]


@runtime_checkable
class EndpointStore(Protocol):
    """
    Persistence contract for the endpoint table.

    Implementations must return the live table on every load; callers never cache it.
    """

    def load(self) -> Sequence[EndpointDefinition]:
        """Return all stored definitions in definition order."""
        ...

    def save(self, definitions: Sequence[EndpointDefinition]) -> None:
        """Replace the stored table."""
        ...
