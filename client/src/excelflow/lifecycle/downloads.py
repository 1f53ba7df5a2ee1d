from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from excelflow.contracts import RunHandle, SaveTarget
from excelflow.errors import ValidationError
from excelflow.orchestration.operations import DOWNLOAD_ARCHIVE, DOWNLOAD_ARTIFACT, Operation
from excelflow.service.client import JobServiceClient

logger = logging.getLogger("excelflow.downloads")


def archive_name(run_id: str) -> str:
    return f"archive_{run_id}.zip"


class _StreamingDownloader:
    def __init__(self, client: JobServiceClient, target: SaveTarget) -> None:
        self._client = client
        self._target = target

    async def _save(
        self, operation: Operation, params: Mapping[str, str], suggested_name: str
    ) -> Path:
        size = 0
        async with self._client.stream(operation, params=params) as response:
            with self._target.open(suggested_name) as sink:
                async for chunk in response.aiter_bytes():
                    sink.write(chunk)
                    size += len(chunk)
        path = self._target.committed_path(suggested_name)
        logger.info("Saved %s (%d bytes)", path, size)
        return path


class ArtifactDownloader(_StreamingDownloader):
    """Downloads one artifact of a run, saved under its download key."""

    async def download(self, handle: RunHandle, download_key: str) -> Path:
        if not download_key or not download_key.strip():
            raise ValidationError("download key must be a non-empty string")
        return await self._save(
            DOWNLOAD_ARTIFACT,
            {"run_id": handle.run_id, "filename": download_key},
            download_key,
        )


class BulkArchiveDownloader(_StreamingDownloader):
    """Downloads the server-built archive of all artifacts of a run."""

    async def download_all(self, handle: RunHandle) -> Path:
        return await self._save(
            DOWNLOAD_ARCHIVE,
            {"run_id": handle.run_id},
            archive_name(handle.run_id),
        )
