from __future__ import annotations

from dataclasses import dataclass

from excelflow.contracts import HttpMethod


@dataclass(frozen=True, slots=True)
class Operation:
    """Logical remote operation, looked up by path key and method."""

    path: str
    method: HttpMethod

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


SUBMIT_RUN = Operation("/process", "POST")
RUN_STATUS = Operation("/status/:run_id", "GET")
RUN_RESULTS = Operation("/results/:run_id", "GET")
DOWNLOAD_ARTIFACT = Operation("/download/:run_id/:filename", "GET")
DOWNLOAD_ARCHIVE = Operation("/download/zip/:run_id", "GET")
LIST_TEMPLATES = Operation("/template/list", "GET")
LIST_VENDORS = Operation("/vendor/list", "GET")
UPLOAD_TEMPLATE = Operation("/template/upload", "POST")
UPLOAD_VENDOR = Operation("/vendor/upload", "POST")
