from __future__ import annotations

from contextlib import AbstractContextManager
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class SaveTarget(Protocol):
    """
    Destination for downloaded payloads.

    `open()` hands out a transient write handle; leaving the context commits the
    file on success and discards it on error. `committed_path()` is only valid after
    a successful exit.
    """

    def open(self, suggested_name: str) -> AbstractContextManager[BinaryIO]:
        """Open a transient handle for a file saved under `suggested_name`."""
        ...

    def committed_path(self, suggested_name: str) -> Path:
        """Return where a committed file with this name lives."""
        ...
