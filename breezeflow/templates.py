"""Template resolution for ``{{source.path}}`` placeholders.

Placeholders reference the triggering event or the outputs of nodes that have
already run::

    {{trigger.contact.email}}      trigger payload (also ``trigger_data``)
    {{ai-1.output}}                output of node ``ai-1``
    {{personalized_hook}}          AI node output variable
    {{contact.company}}            top-level key of the trigger payload

Resolution never raises. Anything that cannot be found becomes an empty
string, so one missing optional field does not take a whole run down.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Mapping

from .constants import TRIGGER_SOURCES

logger = logging.getLogger(__name__)

TEMPLATE_REGEX = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

_MISSING = object()


def contains_templates(value: str) -> bool:
    """Check if a string contains template placeholders."""
    return bool(TEMPLATE_REGEX.search(value))


def stringify(value: Any) -> str:
    """Render a resolved value as text."""
    if value is None or value is _MISSING:
        return ""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)


def _maybe_json(value: str) -> Any:
    text = value.strip()
    if not text or text[0] not in "{[":
        return _MISSING
    try:
        return json.loads(text)
    except ValueError:
        return _MISSING


def walk_path(value: Any, segments: list[str]) -> Any:
    """Follow dotted ``segments`` into ``value``; ``_MISSING`` when a hop fails."""
    current = value
    for segment in segments:
        if isinstance(current, str):
            current = _maybe_json(current)
            if current is _MISSING:
                return _MISSING
        if isinstance(current, Mapping):
            if segment not in current:
                return _MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return _MISSING
        else:
            return _MISSING
    return current


class TemplateResolver:
    """Resolve placeholders against one execution's data.

    Args:
        node_outputs: Outputs recorded so far, keyed by node id.
        trigger_data: Payload of the triggering event.
        variables: AI ``output_variable`` names mapped to the declaring node id.
    """

    def __init__(
        self,
        node_outputs: Mapping[str, Any] | None = None,
        trigger_data: Mapping[str, Any] | None = None,
        variables: Mapping[str, str] | None = None,
    ) -> None:
        self.node_outputs = node_outputs or {}
        self.trigger_data = trigger_data or {}
        self.variables = variables or {}

    # ------------------------------------------------------------------
    def _source(self, name: str) -> Any:
        if name in TRIGGER_SOURCES:
            return self.trigger_data
        if name in self.node_outputs:
            return self.node_outputs[name]
        node_id = self.variables.get(name)
        if node_id is not None and node_id in self.node_outputs:
            output = self.node_outputs[node_id]
            if isinstance(output, Mapping):
                if name in output:
                    return output[name]
                if "output" in output:
                    return output["output"]
            return output
        if isinstance(self.trigger_data, Mapping) and name in self.trigger_data:
            return self.trigger_data[name]
        return _MISSING

    def _lookup(self, expression: str) -> Any:
        parts = [part.strip() for part in expression.strip().split(".")]
        if not parts or not parts[0]:
            return _MISSING
        value = self._source(parts[0])
        if value is _MISSING:
            return _MISSING
        segments = parts[1:]
        # ``node.output`` names the node's value itself unless it has an ``output`` key.
        if segments and segments[0] == "output":
            if not (isinstance(value, Mapping) and "output" in value):
                segments = segments[1:]
        return walk_path(value, segments)

    # ------------------------------------------------------------------
    def lookup(self, expression: str) -> Any:
        """Return the raw value for a bare path or a single placeholder.

        Missing values come back as ``None``.
        """
        match = TEMPLATE_REGEX.fullmatch(expression.strip())
        if match:
            expression = match.group(1)
        value = self._lookup(expression)
        return None if value is _MISSING else value

    def resolve(self, template: str) -> str:
        """Replace every placeholder in ``template`` with its text value."""
        if not isinstance(template, str) or "{{" not in template:
            return template

        def replace(match: re.Match) -> str:
            value = self._lookup(match.group(1))
            if value is _MISSING:
                logger.debug(f"Unresolved template placeholder {match.group(0)}")
            return stringify(value)

        return TEMPLATE_REGEX.sub(replace, template)

    def resolve_value(self, value: Any) -> Any:
        """Recursively resolve placeholders in strings, mappings and lists.

        A string that is exactly one placeholder keeps the raw value so
        structured data reaches action dispatchers intact.
        """
        if isinstance(value, str):
            match = TEMPLATE_REGEX.fullmatch(value)
            if match:
                resolved = self._lookup(match.group(1))
                return "" if resolved is _MISSING or resolved is None else resolved
            return self.resolve(value)
        if isinstance(value, Mapping):
            return {key: self.resolve_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.resolve_value(item) for item in value]
        return value


def resolve_template(
    template: str,
    node_outputs: Mapping[str, Any],
    trigger_data: Mapping[str, Any],
    variables: Mapping[str, str] | None = None,
) -> str:
    """Functional shortcut for :meth:`TemplateResolver.resolve`."""
    return TemplateResolver(node_outputs, trigger_data, variables).resolve(template)
