from __future__ import annotations

import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from excelflow.errors import ValidationError

_ENV_DOWNLOAD_ROOT = "EXCELFLOW_DOWNLOAD_ROOT"
_LOCAL_DOWNLOAD_DIRNAME = "downloads"
_TEMP_DOWNLOAD_DIRNAME = "excelflow-downloads"


def resolve_download_root() -> Path:
    """Resolve a writable download root directory and ensure it exists."""
    candidates: list[Path] = []

    env_value = os.environ.get(_ENV_DOWNLOAD_ROOT)
    if env_value:
        candidates.append(Path(env_value).expanduser())

    candidates.append(Path.cwd() / _LOCAL_DOWNLOAD_DIRNAME)
    candidates.append(Path(tempfile.gettempdir()) / _TEMP_DOWNLOAD_DIRNAME)

    for candidate in candidates:
        if _ensure_writable_dir(candidate):
            return candidate

    raise RuntimeError("Unable to resolve a writable download root directory.")


def build_run_download_dir(run_id: str, *, download_root: Path | None = None) -> Path:
    """Build and create the per-run download directory for a run id."""
    root = download_root if download_root is not None else resolve_download_root()
    run_dir = root / "runs" / safe_filename(run_id)
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def safe_filename(name: str) -> str:
    """Reduce a server-provided name to a bare file name."""
    candidate = Path(name.replace("\\", "/")).name
    if candidate in {"", ".", ".."}:
        raise ValidationError(f"Cannot derive a file name from {name!r}")
    return candidate


class LocalDirectoryTarget:
    """
    Saves payloads into a directory through a staging file.

    The staging file is removed if the write fails and atomically renamed into
    place otherwise, so a partial download never appears under its final name.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def committed_path(self, suggested_name: str) -> Path:
        return self._directory / safe_filename(suggested_name)

    @contextmanager
    def open(self, suggested_name: str) -> Iterator[BinaryIO]:
        final_path = self.committed_path(suggested_name)
        final_path.parent.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=final_path.parent,
            prefix=f".{final_path.name}.",
            suffix=".part",
            delete=False,
        )
        staged = Path(handle.name)
        committed = False
        try:
            with handle:
                yield handle
            os.replace(staged, final_path)
            committed = True
        finally:
            if not committed:
                staged.unlink(missing_ok=True)


def _ensure_writable_dir(path: Path) -> bool:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False

    return _validate_writable(path)


def _validate_writable(path: Path) -> bool:
    test_file = path / ".write_test"
    try:
        with test_file.open("w", encoding="utf-8") as handle:
            handle.write("ok")
        test_file.unlink(missing_ok=True)
        return True
    except OSError:
        return False
