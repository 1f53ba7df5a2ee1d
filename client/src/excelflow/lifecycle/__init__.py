"""Run lifecycle: submit, poll, map results, download."""

from excelflow.lifecycle.downloads import ArtifactDownloader, BulkArchiveDownloader, archive_name
from excelflow.lifecycle.poller import PollOutcome, PollState, StatusPoller
from excelflow.lifecycle.results import (
    ResultsMapper,
    artifact_basename,
    display_metrics,
    flatten_outputs,
    humanize_key,
)
from excelflow.lifecycle.staging import BulkUploadReport, FileUploadStatus, StagingClient
from excelflow.lifecycle.submitter import RunSubmitter, validate_selection

__all__ = [
    "ArtifactDownloader",
    "BulkArchiveDownloader",
    "archive_name",
    "PollOutcome",
    "PollState",
    "StatusPoller",
    "ResultsMapper",
    "artifact_basename",
    "display_metrics",
    "flatten_outputs",
    "humanize_key",
    "BulkUploadReport",
    "FileUploadStatus",
    "StagingClient",
    "RunSubmitter",
    "validate_selection",
]
