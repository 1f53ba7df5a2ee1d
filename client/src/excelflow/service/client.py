from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from excelflow.configuration import DEFAULT_BASE_URL, ClientConfig
from excelflow.contracts.wire import ErrorBody
from excelflow.errors import ParseError, RequestFailed, TransportError
from excelflow.orchestration.operations import Operation
from excelflow.orchestration.registry import EndpointRegistry

logger = logging.getLogger("excelflow.service")

ModelT = TypeVar("ModelT", bound=BaseModel)


class JobServiceClient:
    """
    Async facade over the remote job service.

    Every request resolves its path through the endpoint registry first, so a
    missing or malformed endpoint fails before any network traffic.
    """

    def __init__(
        self,
        *,
        registry: EndpointRegistry,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if http_client is not None and transport is not None:
            raise ValueError("Provide either http_client or transport, not both.")

        self._registry = registry
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_s,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        *,
        registry: EndpointRegistry,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> JobServiceClient:
        return cls(
            registry=registry,
            base_url=config.service.base_url,
            timeout_s=config.service.timeout_s,
            transport=transport,
        )

    @property
    def registry(self) -> EndpointRegistry:
        return self._registry

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> JobServiceClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def resolve_path(self, operation: Operation, params: Mapping[str, str] | None = None) -> str:
        return self._registry.build_path(operation, params)

    async def request_json(
        self,
        operation: Operation,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        files: Mapping[str, Any] | None = None,
    ) -> Any:
        """Issue one request and return the decoded JSON body."""
        path = self.resolve_path(operation, params)
        logger.debug("%s %s", operation.method, path)
        try:
            response = await self._http.request(operation.method, path, json=json, files=files)
        except httpx.RequestError as exc:
            raise TransportError(f"{operation.method} {path} failed: {exc}") from exc

        _raise_for_status(response)
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError(f"{operation.method} {path} returned a malformed body") from exc

    @asynccontextmanager
    async def stream(
        self,
        operation: Operation,
        *,
        params: Mapping[str, str] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a streamed response; the connection is released when the block exits."""
        path = self.resolve_path(operation, params)
        logger.debug("%s %s (stream)", operation.method, path)
        try:
            async with self._http.stream(operation.method, path) as response:
                if response.is_error:
                    await response.aread()
                    _raise_for_status(response)
                yield response
        except httpx.RequestError as exc:
            raise TransportError(f"{operation.method} {path} failed: {exc}") from exc


def parse_payload(model: type[ModelT], payload: Any, operation: Operation) -> ModelT:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ParseError(f"Unexpected response from {operation}: {exc.error_count()} error(s)") from exc


def _raise_for_status(response: httpx.Response) -> None:
    if response.is_success:
        return
    raise RequestFailed(response.status_code, _extract_detail(response))


def _extract_detail(response: httpx.Response) -> str | None:
    try:
        body = ErrorBody.model_validate(response.json())
    except (ValueError, PydanticValidationError):
        return None

    detail = body.detail
    if detail is None or detail == "":
        return None
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        messages = [
            str(item.get("msg", item)) if isinstance(item, Mapping) else str(item) for item in detail
        ]
        return "; ".join(messages) or None
    return str(detail)
