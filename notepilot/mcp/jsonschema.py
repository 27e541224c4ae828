"""Adapted MCP parameters (JSON Schema subset) -> Pydantic argument models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, create_model

_PRIMITIVES: dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
}
_BOUNDS = (("minimum", "ge"), ("maximum", "le"), ("exclusiveMinimum", "gt"), ("exclusiveMaximum", "lt"))


def _schema_to_type(schema: dict[str, Any]) -> Any:
    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        values: list[Any] = []
        for v in enum:
            try:
                hash(v)
                values.append(v)
            except TypeError:
                pass
        if values:
            return Literal[tuple(values)]  # type: ignore[misc]

    t = schema.get("type")
    if t == "array":
        items = schema.get("items")
        item_t = _schema_to_type(items) if isinstance(items, dict) else Any
        return list[item_t]  # type: ignore[valid-type]
    if t == "object":
        return dict[str, Any]
    if isinstance(t, str) and t in _PRIMITIVES:
        return _PRIMITIVES[t]
    return Any


def _field_constraints(schema: dict[str, Any]) -> dict[str, Any]:
    constraints: dict[str, Any] = {}
    # Literal fields are already closed sets
    if schema.get("enum"):
        return constraints
    if schema.get("type") in ("number", "integer"):
        for key, arg in _BOUNDS:
            value = schema.get(key)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                constraints[arg] = value
    if schema.get("type") == "string":
        if schema.get("minLength") is not None:
            constraints["min_length"] = schema["minLength"]
        if schema.get("maxLength") is not None:
            constraints["max_length"] = schema["maxLength"]
    if schema.get("type") == "array":
        if schema.get("minItems") is not None:
            constraints["min_length"] = schema["minItems"]
        if schema.get("maxItems") is not None:
            constraints["max_length"] = schema["maxItems"]
    return constraints


def jsonschema_to_pydantic_model(model_name: str, schema: dict[str, Any] | None) -> type[BaseModel]:
    """Build an argument model from an adapted tool's ``parameters``.

    Supported:
    - type=object with properties + required
    - primitives: string, number, integer, boolean
    - arrays (typed items), nested objects as plain dicts
    - enum -> Literal
    - numeric bounds, string length and array size limits
    """
    schema = schema or {}
    props = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    fields: dict[str, tuple[Any, Any]] = {}
    if isinstance(props, dict):
        for name, prop_schema in props.items():
            if not isinstance(prop_schema, dict):
                continue

            py_type = _schema_to_type(prop_schema)
            desc = prop_schema.get("description", "")
            constraints = _field_constraints(prop_schema)

            if name in required:
                fields[name] = (py_type, Field(..., description=desc, **constraints))
            else:
                fields[name] = (
                    py_type | None,
                    Field(prop_schema.get("default"), description=desc, **constraints),
                )

    if not fields:
        return create_model(model_name, __base__=BaseModel)  # type: ignore[call-overload]

    return create_model(model_name, __base__=BaseModel, **fields)  # type: ignore[call-overload]
