"""Deterministic example values for request and response schemas."""

from typing import Any


class ExampleGenerator:
    """Builds representative values from field and response schemas."""

    def from_fields(self, fields: dict[str, dict]) -> dict[str, Any]:
        """Example request payload for {field: {type, constraints}} schemas."""
        return {name: self.value_for(definition) for name, definition in fields.items()}

    def from_schema(self, schema: dict) -> Any:
        """Example value for a response schema node."""
        if not isinstance(schema, dict) or schema.get("undocumented"):
            return None
        return self.value_for(schema)

    def value_for(self, prop: dict) -> Any:
        field_type = prop.get("type", "string")
        if field_type in ("integer", "int"):
            return self._integer(prop)
        if field_type in ("number", "float", "double"):
            return self._number(prop)
        if field_type in ("boolean", "bool"):
            return True
        if field_type == "null":
            return None
        if field_type == "array":
            return self._array(prop)
        if field_type == "object":
            return self._object(prop)
        return self._string(prop)

    def _integer(self, prop: dict) -> int:
        low, high = _bound(prop, "min:"), _bound(prop, "max:")
        if low is not None and high is not None:
            return (low + high) // 2
        if low is not None:
            return low
        if high is not None:
            return min(high, 100)
        return 42

    def _number(self, prop: dict) -> float:
        low, high = _bound(prop, "min:"), _bound(prop, "max:")
        if low is not None and high is not None:
            return (low + high) / 2.0
        if low is not None:
            return float(low)
        if high is not None:
            return min(float(high), 100.0)
        return 3.14

    def _string(self, prop: dict) -> str:
        for constraint in prop.get("constraints", []):
            if constraint == "email":
                return "user@example.com"
            if constraint == "url":
                return "https://example.com"
            if constraint == "uuid":
                return "550e8400-e29b-41d4-a716-446655440000"
            if constraint == "date":
                return "2024-01-01"
            if constraint.startswith("enum:"):
                return constraint[len("enum:"):].split(",")[0].strip() or "value"

        length = 10
        low, high = _bound(prop, "min:"), _bound(prop, "max:")
        if low is not None:
            length = max(length, low)
        if high is not None:
            length = min(length, high)
        return "a" * length

    def _array(self, prop: dict) -> list:
        if "items" in prop:
            return [self.value_for(prop["items"])]
        return ["item1", "item2"]

    def _object(self, prop: dict) -> dict:
        if "properties" in prop:
            return {k: self.value_for(v) for k, v in prop["properties"].items()}
        return {"key": "value"}


def _bound(prop: dict, prefix: str) -> int | None:
    for constraint in prop.get("constraints", []):
        if constraint.startswith(prefix):
            try:
                return int(constraint[len(prefix):])
            except ValueError:
                return None
    return None
