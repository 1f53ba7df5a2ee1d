from __future__ import annotations

import logging
from collections.abc import Sequence

from excelflow.contracts import RunHandle
from excelflow.contracts.wire import SubmitRequest, SubmitResponse
from excelflow.errors import SelectionInvalid
from excelflow.orchestration.operations import SUBMIT_RUN
from excelflow.service.client import JobServiceClient, parse_payload

logger = logging.getLogger("excelflow.submitter")


def validate_selection(template_ids: Sequence[str], vendor_id: str | None) -> None:
    errors: list[str] = []
    if not any(template_id and template_id.strip() for template_id in template_ids):
        errors.append("select at least one template")
    if vendor_id is None or not vendor_id.strip():
        errors.append("select a vendor file")
    if errors:
        raise SelectionInvalid("Please " + " and ".join(errors) + ".")


class RunSubmitter:
    """Submits a processing job; at most one request per call."""

    def __init__(self, client: JobServiceClient) -> None:
        self._client = client

    async def submit(self, template_ids: Sequence[str], vendor_id: str | None) -> RunHandle:
        validate_selection(template_ids, vendor_id)
        request = SubmitRequest(
            templates=[template_id for template_id in template_ids if template_id.strip()],
            vendor=vendor_id,
        )
        payload = await self._client.request_json(SUBMIT_RUN, json=request.model_dump())
        response = parse_payload(SubmitResponse, payload, SUBMIT_RUN)
        logger.info("Run %s submitted with status %s", response.run_id, response.status)
        return RunHandle(run_id=response.run_id)
