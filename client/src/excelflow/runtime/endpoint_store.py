from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from excelflow.configuration import ConfigError, dump_yaml, load_yaml
from excelflow.contracts import EndpointDefinition, HttpMethod

logger = logging.getLogger("excelflow.endpoint_store")


class _EndpointEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    path: str = Field(min_length=1)
    method: HttpMethod
    description: str = ""


class _EndpointTable(BaseModel):
    model_config = ConfigDict(extra="forbid")

    endpoints: list[_EndpointEntry] = Field(default_factory=list)


def default_endpoint_definitions() -> list[EndpointDefinition]:
    """Routes of the reference processing service, bulk archive ahead of single files."""
    return [
        EndpointDefinition("/template/upload", "POST", "Upload a template workbook."),
        EndpointDefinition("/vendor/upload", "POST", "Upload a vendor workbook."),
        EndpointDefinition("/template/list", "GET", "List uploaded templates."),
        EndpointDefinition("/vendor/list", "GET", "List uploaded vendor files."),
        EndpointDefinition("/process", "POST", "Start a processing run."),
        EndpointDefinition("/status/{run_id}", "GET", "Poll the status of a run."),
        EndpointDefinition("/results/{run_id}", "GET", "Fetch the results of a finished run."),
        EndpointDefinition("/download/zip/{run_id}", "GET", "Download all outputs as a zip."),
        EndpointDefinition("/download/{run_id}/{filename}", "GET", "Download one output file."),
    ]


def parse_definitions(payload: Any, *, source: str) -> list[EndpointDefinition]:
    if isinstance(payload, list):
        payload = {"endpoints": payload}
    try:
        table = _EndpointTable.model_validate(payload)
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid endpoint table in {source}: {exc}") from exc
    return [
        EndpointDefinition(path_template=entry.path, method=entry.method, description=entry.description)
        for entry in table.endpoints
    ]


def serialize_definitions(definitions: Iterable[EndpointDefinition]) -> dict[str, Any]:
    return {
        "endpoints": [
            {"path": item.path_template, "method": item.method, "description": item.description}
            for item in definitions
        ]
    }


def merge_definitions(
    existing: Sequence[EndpointDefinition], incoming: Iterable[EndpointDefinition]
) -> list[EndpointDefinition]:
    """Append incoming rows whose (path, method) key is not already present."""
    merged = list(existing)
    seen = {item.key for item in merged}
    for item in incoming:
        if item.key in seen:
            continue
        merged.append(item)
        seen.add(item.key)
    return merged


class YamlEndpointStore:
    """
    Endpoint table persisted as YAML.

    Every `load()` re-reads the file; a missing file is an empty table.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[EndpointDefinition]:
        try:
            payload = load_yaml(self._path)
        except FileNotFoundError:
            return []
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigError(f"Cannot read endpoint table {self._path}: {exc}") from exc
        return parse_definitions(payload, source=str(self._path))

    def save(self, definitions: Sequence[EndpointDefinition]) -> None:
        dump_yaml(self._path, serialize_definitions(definitions))


def export_definitions(definitions: Iterable[EndpointDefinition], path: str | Path) -> Path:
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with output.open("w", encoding="utf-8") as handle:
        json.dump(serialize_definitions(definitions), handle, indent=2)
    return output


def import_definitions(path: str | Path) -> list[EndpointDefinition]:
    source = Path(path)
    try:
        with source.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Endpoint table {source} is not valid JSON: {exc}") from exc
    definitions = parse_definitions(payload, source=str(source))
    logger.info("Read %d endpoint definition(s) from %s", len(definitions), source)
    return definitions
