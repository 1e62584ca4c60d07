"""Structural check of generated schemas against the JSON-Schema type subset."""

VALID_TYPES = ("string", "integer", "number", "boolean", "array", "object", "null", "enum")


class JsonSchemaValidator:
    def validate(self, schema: dict) -> dict:
        errors: list[dict] = []
        self._walk(schema, "", errors)
        return {"valid": not errors, "errors": errors}

    def validate_entry(self, entry: dict) -> list[dict]:
        """Errors in a contract entry's request and response schemas."""
        errors = []
        request = entry.get("request_schema") or {}
        if request.get("properties"):
            found = self.validate({"properties": request["properties"]})["errors"]
            errors += [{**e, "path": "request_schema" + e["path"]} for e in found]
        response = entry.get("response_schema") or {}
        found = self.validate(response)["errors"]
        errors += [{**e, "path": "response_schema" + e["path"]} for e in found]
        return errors

    def _walk(self, schema, path: str, errors: list[dict]) -> None:
        if not isinstance(schema, dict):
            return

        if "type" not in schema:
            for name, prop in (schema.get("properties") or {}).items():
                self._walk(prop, f"{path}.{name}", errors)
            return

        type_ = schema["type"]
        if type_ not in VALID_TYPES:
            errors.append({
                "path": path,
                "message": f"Invalid type '{type_}'. Must be one of: {', '.join(VALID_TYPES)}",
            })

        if type_ == "array" and "items" in schema:
            self._walk(schema["items"], f"{path}.items", errors)
        if type_ == "object":
            for name, prop in (schema.get("properties") or {}).items():
                self._walk(prop, f"{path}.{name}", errors)
