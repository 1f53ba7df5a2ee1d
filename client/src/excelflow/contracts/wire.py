from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class SubmitRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    templates: list[str] = Field(min_length=1)
    vendor: str = Field(min_length=1)


class SubmitResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    run_id: str = Field(min_length=1)
    status: str
    message: str | None = None


class StatusResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    run_id: str
    status: Literal["queued", "processing", "completed", "failed", "error"]
    progress: int = Field(default=0, ge=0, le=100)
    current_stage: str = ""
    start_time: str | None = None
    elapsed: str | None = None


class ResultsResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    run_id: str
    status: str
    completion_time: str | None = None
    templates: list[str] = Field(default_factory=list)
    vendor: str = ""
    # Entry values are validated one by one in flatten_outputs.
    outputs: dict[str, dict[str, Any]] = Field(default_factory=dict)
    metrics: dict[str, Any] = Field(default_factory=dict)


class ErrorBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    detail: Any = None


class TemplateListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    templates: list[str] = Field(default_factory=list)


class VendorListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    vendors: list[str] = Field(default_factory=list)


class UploadResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filename: str | None = None
    message: str | None = None
