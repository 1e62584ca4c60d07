"""Validation rules to request schema.

A validator is any class exposing a ``rules()`` method that returns a mapping
of field name to rules, written either as a pipe-delimited string
("required|string|max:255") or as a list of tokens.
"""

import inspect
import logging
from typing import Any

from api_contract_gen.analyzer.examples import ExampleGenerator
from api_contract_gen.cache.analysis import AnalysisCache
from api_contract_gen.errors import ValidationSchemaError
from api_contract_gen.routing.reflection import HandlerInfo, dotted_name

logger = logging.getLogger(__name__)

QUERY_METHODS = ("GET", "HEAD", "DELETE")

TYPE_TOKENS = {
    "integer": "integer",
    "int": "integer",
    "numeric": "number",
    "float": "number",
    "double": "number",
    "boolean": "boolean",
    "bool": "boolean",
    "array": "array",
    "string": "string",
}
MARKER_TOKENS = ("email", "url", "uuid", "date")
VERBATIM_PREFIXES = ("min:", "max:", "regex:", "exists:", "unique:")


def bracket_path(field: str) -> str:
    """'user.address.city' -> 'user[address][city]'."""
    if "." not in field:
        return field
    root, *rest = field.split(".")
    return root + "".join(f"[{segment}]" for segment in rest)


def parse_rules(rules: dict[str, Any]) -> dict[str, dict]:
    """Translate a rule set into {field: {type, required, constraints}}. Never raises."""
    schema = {}
    for field, rule in rules.items():
        if isinstance(rule, str):
            tokens = rule.split("|")
        elif isinstance(rule, (list, tuple)):
            tokens = list(rule)
        else:
            tokens = []

        field_type = "string"
        required = False
        constraints: list[str] = []

        for token in tokens:
            if not isinstance(token, str):
                continue
            token = token.strip()
            if token == "required":
                required = True
            elif token in TYPE_TOKENS:
                field_type = TYPE_TOKENS[token]
            elif token in MARKER_TOKENS:
                constraints.append(token)
            elif token.startswith(VERBATIM_PREFIXES):
                constraints.append(token)
            elif token.startswith("in:"):
                constraints.append("enum: " + token[3:])

        schema[bracket_path(str(field))] = {
            "type": field_type,
            "required": required,
            "constraints": constraints,
        }
    return schema


def is_validator_class(annotation: Any) -> bool:
    return inspect.isclass(annotation) and callable(getattr(annotation, "rules", None))


class ValidatorAnalyzer:
    """Finds the validator a handler accepts and turns its rules into a request schema."""

    def __init__(self, cache: AnalysisCache, request_types: list[str] | None = None):
        self.cache = cache
        self.request_types = request_types or ["Request"]
        self.examples = ExampleGenerator()

    def extract_request_schema(self, info: HandlerInfo, is_query: bool) -> dict:
        validator = self.find_validator(info)
        if validator is not None:
            properties = self._validator_properties(validator)
            return {
                "location": "query" if is_query else "body",
                "properties": properties,
                "example": self.examples.from_fields(properties),
            }

        if is_query and self._accepts_request(info):
            return {"location": "query", "properties": {}}
        return {}

    def find_validator(self, info: HandlerInfo) -> type | None:
        for name, annotation in info.parameters.items():
            if isinstance(annotation, str) and annotation.endswith(("Request", "Validator")) \
                    and annotation not in self.request_types:
                # Unresolved forward reference to a validator class
                raise ValidationSchemaError.class_not_found(annotation)
            if is_validator_class(annotation):
                return annotation
            if inspect.isclass(annotation) and annotation.__name__.endswith("Validator"):
                raise ValidationSchemaError.rules_not_found(dotted_name(annotation))
        return None

    def _validator_properties(self, validator: type) -> dict:
        identifier = dotted_name(validator)
        try:
            source_file = inspect.getsourcefile(validator)
        except TypeError:
            source_file = None
        return self.cache.remember(
            "validator", identifier, source_file, lambda: self._parse_validator(validator)
        )

    def _parse_validator(self, validator: type) -> dict:
        identifier = dotted_name(validator)
        try:
            instance = validator()
        except Exception as e:
            raise ValidationSchemaError.instantiation_failed(identifier, str(e)) from e

        try:
            rules = instance.rules()
        except Exception as e:
            raise ValidationSchemaError.invalid_rules(identifier, str(e)) from e

        if not isinstance(rules, dict):
            raise ValidationSchemaError.invalid_rules(
                identifier, f"rules() must return a mapping, got {type(rules).__name__}"
            )

        logger.debug("Parsed %d rules from %s", len(rules), identifier)
        return parse_rules(rules)

    def _accepts_request(self, info: HandlerInfo) -> bool:
        for annotation in info.parameters.values():
            name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", None)
            if name in self.request_types:
                return True
        return False
