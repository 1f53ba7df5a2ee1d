from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from excelflow.contracts.wire import TemplateListResponse, UploadResponse, VendorListResponse
from excelflow.errors import RunClientError, ValidationError
from excelflow.orchestration.operations import (
    LIST_TEMPLATES,
    LIST_VENDORS,
    UPLOAD_TEMPLATE,
    UPLOAD_VENDOR,
    Operation,
)
from excelflow.service.client import JobServiceClient, parse_payload

logger = logging.getLogger("excelflow.staging")

UploadState = Literal["success", "error"]


@dataclass(frozen=True, slots=True)
class FileUploadStatus:
    name: str
    status: UploadState
    remote_name: str | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class BulkUploadReport:
    kind: str
    files: Sequence[FileUploadStatus]

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.files if item.status == "success")

    @property
    def failed(self) -> int:
        return sum(1 for item in self.files if item.status == "error")

    @property
    def overall(self) -> Literal["completed", "error"]:
        if self.files and self.succeeded == 0:
            return "error"
        return "completed"

    @property
    def remote_names(self) -> list[str]:
        return [item.remote_name for item in self.files if item.remote_name]

    def summary(self) -> str:
        return f"Upload process finished. {self.succeeded} successful, {self.failed} failed."


class StagingClient:
    """
    Lists and uploads the input files a run refers to.

    The names returned here are the identifiers passed to RunSubmitter.submit().
    """

    def __init__(self, client: JobServiceClient) -> None:
        self._client = client

    async def list_templates(self) -> list[str]:
        payload = await self._client.request_json(LIST_TEMPLATES)
        return parse_payload(TemplateListResponse, payload, LIST_TEMPLATES).templates

    async def list_vendors(self) -> list[str]:
        payload = await self._client.request_json(LIST_VENDORS)
        return parse_payload(VendorListResponse, payload, LIST_VENDORS).vendors

    async def upload_templates(self, paths: Iterable[str | Path]) -> BulkUploadReport:
        return await self._upload_all("template", UPLOAD_TEMPLATE, [Path(path) for path in paths])

    async def upload_vendor(self, path: str | Path) -> BulkUploadReport:
        return await self._upload_all("vendor", UPLOAD_VENDOR, [Path(path)])

    async def _upload_all(
        self, kind: str, operation: Operation, paths: list[Path]
    ) -> BulkUploadReport:
        if not paths:
            raise ValidationError(f"Select at least one {kind} file to upload.")
        # Fail fast on a missing endpoint before touching any file.
        self._client.resolve_path(operation)

        statuses: list[FileUploadStatus] = []
        for path in paths:
            try:
                remote_name = await self._upload_one(operation, path)
            except (RunClientError, OSError) as exc:
                logger.warning("Upload of %s %s failed: %s", kind, path.name, exc)
                statuses.append(FileUploadStatus(name=path.name, status="error", message=str(exc)))
            else:
                statuses.append(
                    FileUploadStatus(name=path.name, status="success", remote_name=remote_name)
                )
        report = BulkUploadReport(kind=kind, files=tuple(statuses))
        logger.info("%s upload: %s", kind.capitalize(), report.summary())
        return report

    async def _upload_one(self, operation: Operation, path: Path) -> str:
        content = path.read_bytes()
        payload = await self._client.request_json(
            operation,
            files={"file": (path.name, content, "application/octet-stream")},
        )
        response = parse_payload(UploadResponse, payload, operation)
        return response.filename or path.name
