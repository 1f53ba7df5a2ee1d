from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass

from excelflow.contracts import HTTP_METHODS, EndpointDefinition, EndpointStore, HttpMethod
from excelflow.errors import EndpointUnresolved, UnfilledPlaceholderError, ValidationError
from excelflow.orchestration.operations import Operation

logger = logging.getLogger("excelflow.registry")

_PLACEHOLDER_PATTERN = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)|\{([A-Za-z_][A-Za-z0-9_]*)\}")


def fill_parameters(template: str, params: Mapping[str, str]) -> str:
    """
    Substitute every `:name` and `{name}` placeholder found in `params`.

    Placeholders without a value are left as literal text.
    """

    def replace(match: re.Match[str]) -> str:
        name = match.group(1) or match.group(2)
        if name in params:
            return str(params[name])
        return match.group(0)

    return _PLACEHOLDER_PATTERN.sub(replace, template)


def unfilled_placeholders(template: str, params: Mapping[str, str] | None = None) -> list[str]:
    """Placeholders of `template` that `params` does not supply a value for."""
    params = params or {}
    return [
        match.group(0)
        for match in _PLACEHOLDER_PATTERN.finditer(template)
        if (match.group(1) or match.group(2)) not in params
    ]


@dataclass
class EndpointRegistry:
    """
    Resolves logical operations against the user-maintained endpoint table.

    The table is re-read from the store on every call so live edits apply to the
    next operation. When several definitions match, the first-defined one wins
    and the ambiguity is logged; this is a known limitation of prefix matching.
    """

    store: EndpointStore

    def definitions(self) -> list[EndpointDefinition]:
        return list(self.store.load())

    def lookup(self, operation_path: str, method: HttpMethod) -> EndpointDefinition | None:
        candidates = [
            definition
            for definition in self.store.load()
            if definition.method == method and operation_path.startswith(definition.static_prefix)
        ]
        if not candidates:
            return None
        if len(candidates) > 1:
            logger.warning(
                "Ambiguous endpoint for %s %s; using first of %s",
                method,
                operation_path,
                [candidate.path_template for candidate in candidates],
            )
        return candidates[0]

    def resolve(self, operation_path: str, method: HttpMethod) -> EndpointDefinition:
        definition = self.lookup(operation_path, method)
        if definition is None:
            raise EndpointUnresolved(operation_path, method)
        return definition

    def build_path(self, operation: Operation, params: Mapping[str, str] | None = None) -> str:
        """Resolve an operation and return its concrete, fully substituted path."""
        definition = self.resolve(operation.path, operation.method)
        params = params or {}
        # Checked on the template; substituted values are opaque and never rescanned.
        leftovers = unfilled_placeholders(definition.path_template, params)
        if leftovers:
            raise UnfilledPlaceholderError(definition.path_template, leftovers)
        return fill_parameters(definition.path_template, params)

    def add(
        self, path_template: str, method: HttpMethod, description: str
    ) -> EndpointDefinition:
        errors: list[str] = []
        if not path_template or not path_template.strip():
            errors.append("path must be a non-empty string")
        if not description or not description.strip():
            errors.append("description must be a non-empty string")
        if method not in HTTP_METHODS:
            errors.append(f"method must be one of {', '.join(HTTP_METHODS)}")
        if errors:
            raise ValidationError("; ".join(errors))

        definition = EndpointDefinition(
            path_template=path_template.strip(),
            method=method,
            description=description.strip(),
        )
        current = self.definitions()
        if any(existing.key == definition.key for existing in current):
            raise ValidationError(
                f"Endpoint {definition.method} {definition.path_template} is already defined"
            )
        self.store.save([*current, definition])
        logger.info("Added endpoint %s %s", definition.method, definition.path_template)
        return definition

    def remove(self, path_template: str, method: HttpMethod) -> bool:
        current = self.definitions()
        remaining = [item for item in current if item.key != (path_template, method)]
        if len(remaining) == len(current):
            return False
        self.store.save(remaining)
        logger.info("Removed endpoint %s %s", method, path_template)
        return True
