"""Tool registry and dispatch.

Each tool is registered once with a descriptor (name, description, JSON-Schema input
contract) and an async handler. `ToolRegistry.invoke()`:
- fails closed with a not-found envelope for unknown names
- validates arguments against the declared schema before the handler runs
- passes the handler's envelope through unchanged
- writes exactly one audit event per invocation

Exceptions raised inside a handler (an upstream payload with an unexpected shape) are not
converted into envelopes here.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from .audit import build_event, new_correlation_id, summarize_reason
from .envelope import ToolResult
from .errors import ToolError, unknown_tool_error, validation_error

if TYPE_CHECKING:
    from .tools import Runtime

logger = logging.getLogger(__name__)

Handler = Callable[["Runtime", dict[str, Any]], Awaitable[ToolResult]]

_TYPE_NAMES = {
    "string": "a string",
    "integer": "an integer",
    "number": "a number",
    "boolean": "a boolean",
    "array": "an array",
    "object": "an object",
}


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Public contract of a single tool."""

    name: str
    description: str
    input_schema: dict[str, Any]


def _matches_type(expected: str, value: Any) -> bool:
    # bool is a subclass of int; JSON booleans are never numbers here.
    if expected == "string":
        return isinstance(value, str)
    if expected == "integer":
        if isinstance(value, bool):
            return False
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    if expected == "object":
        return isinstance(value, dict)
    return True


def _check_field(key: str, spec: dict[str, Any], value: Any) -> Any:
    expected = spec.get("type")
    if expected is not None and not _matches_type(expected, value):
        raise ToolError(code="UserInput", message=f"Field '{key}' must be {_TYPE_NAMES.get(expected, expected)}")

    if expected == "integer" and isinstance(value, float):
        value = int(value)

    enum = spec.get("enum")
    if enum is not None and value not in enum:
        allowed = ", ".join(repr(e) for e in enum)
        raise ToolError(code="UserInput", message=f"Field '{key}' must be one of: {allowed}")

    if expected == "string":
        min_len = spec.get("minLength")
        if isinstance(min_len, int) and len(value) < min_len:
            if min_len == 1:
                raise ToolError(code="UserInput", message=f"Field '{key}' must not be empty")
            raise ToolError(code="UserInput", message=f"Field '{key}' must be at least {min_len} characters")

    if expected in ("integer", "number"):
        minimum = spec.get("minimum")
        maximum = spec.get("maximum")
        if isinstance(minimum, (int, float)) and value < minimum:
            raise ToolError(code="UserInput", message=f"Field '{key}' must be >= {minimum}")
        if isinstance(maximum, (int, float)) and value > maximum:
            raise ToolError(code="UserInput", message=f"Field '{key}' must be <= {maximum}")

    if expected == "array":
        min_items = spec.get("minItems")
        if isinstance(min_items, int) and len(value) < min_items:
            raise ToolError(code="UserInput", message=f"Field '{key}' must contain at least {min_items} item(s)")
        items = spec.get("items")
        if isinstance(items, dict):
            value = [_check_field(f"{key}[{i}]", items, item) for i, item in enumerate(value)]

    return value


def validate_tool_arguments(schema: dict[str, Any], arguments: dict[str, Any]) -> dict[str, Any]:
    """Validate tool arguments against a declared input schema.

    Enforces required fields, unexpected fields (additionalProperties=false), primitive
    types, enums, string length, numeric range and array length/item types. It does NOT
    implement full JSON Schema.

    Returns:
        A copy of the arguments with schema defaults applied.

    Raises:
        ToolError: Naming the first violated field.
    """
    if not isinstance(arguments, dict):
        raise ToolError(code="UserInput", message="Arguments must be an object")

    props: dict[str, Any] = schema.get("properties", {})
    required: list[str] = schema.get("required", [])

    for k in required:
        if k not in arguments or arguments[k] is None:
            raise ToolError(code="UserInput", message=f"Missing required field: {k}")

    if schema.get("additionalProperties", True) is False:
        extras = sorted(k for k in arguments if k not in props)
        if extras:
            raise ToolError(
                code="UserInput",
                message=f"Unexpected field(s): {', '.join(extras)}",
                hint=f"Allowed fields: {', '.join(props) or '(none)'}",
            )

    out: dict[str, Any] = {}
    for k, spec in props.items():
        value = arguments.get(k)
        if value is None:
            if "default" in spec:
                out[k] = copy.deepcopy(spec["default"])
            continue
        out[k] = _check_field(k, spec, value)
    return out


class ToolRegistry:
    """Maps tool names to descriptors and handlers bound to one runtime."""

    def __init__(self, runtime: Runtime) -> None:
        self._runtime = runtime
        self._tools: dict[str, tuple[ToolDescriptor, Handler]] = {}

    def register(self, descriptor: ToolDescriptor, handler: Handler) -> None:
        """Register a tool. Names are unique within a registry."""
        if descriptor.name in self._tools:
            raise ValueError(f"Tool already registered: {descriptor.name}")
        self._tools[descriptor.name] = (descriptor, handler)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[ToolDescriptor]:
        return [descriptor for descriptor, _ in self._tools.values()]

    def _audit(self, *, correlation_id: str, name: str, outcome: str, reason: str | None, start: float) -> None:
        audit = self._runtime.audit
        audit.write_event(
            build_event(
                correlation_id=correlation_id,
                operation=name,
                target_repo=self._runtime.config.full_name,
                outcome=outcome,
                reason=reason,
                duration_ms=audit.measure_duration_ms(start),
            )
        )

    async def invoke(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """Dispatch a tool call and return its envelope."""
        correlation_id = new_correlation_id()
        start = self._runtime.audit.measure_start()

        entry = self._tools.get(name)
        if entry is None:
            result = unknown_tool_error(name, self._tools)
            self._audit(correlation_id=correlation_id, name=name, outcome="denied", reason="Unknown tool", start=start)
            return result

        descriptor, handler = entry
        try:
            validated = validate_tool_arguments(descriptor.input_schema, {} if arguments is None else arguments)
        except ToolError as err:
            self._audit(correlation_id=correlation_id, name=name, outcome="denied", reason=err.message, start=start)
            return validation_error(name, err)

        logger.debug("Invoking %s (correlation_id=%s)", name, correlation_id)
        try:
            result = await handler(self._runtime, validated)
        except Exception as exc:
            self._audit(
                correlation_id=correlation_id,
                name=name,
                outcome="error",
                reason=type(exc).__name__,
                start=start,
            )
            raise

        if result.is_error:
            self._audit(
                correlation_id=correlation_id,
                name=name,
                outcome="failed",
                reason=summarize_reason(result.text),
                start=start,
            )
        else:
            self._audit(correlation_id=correlation_id, name=name, outcome="succeeded", reason=None, start=start)
        return result
