"""Per-route facts: path parameters, auth, rate limit, headers, API version."""

import hashlib
import inspect
import logging
import re
import types
import typing
import uuid
from typing import Any

from api_contract_gen.analyzer.middleware import MiddlewareClassifier, middleware_name
from api_contract_gen.cache.analysis import AnalysisCache
from api_contract_gen.routing.base import RouteRecord
from api_contract_gen.routing.reflection import HandlerInfo

logger = logging.getLogger(__name__)

PATH_PARAM = re.compile(r"\{(\w+)(\??)(?::[^}]*)?\}")
API_VERSION = re.compile(r"/api/(v\d+)(?:/|$)")

BUILTIN_TYPES = {int: "integer", float: "number", bool: "boolean", str: "string", uuid.UUID: "string"}
ANNOTATION_NAMES = {"int": "integer", "float": "number", "bool": "boolean", "str": "string", "UUID": "string"}
KEY_TYPES = {"int": "integer", "integer": "integer", "str": "string", "string": "string", "uuid": "string"}
STRING_NAMES = ("slug", "hash", "token", "code", "key")


def parameter_type_from_name(name: str) -> str:
    """id, *_id, *Id and uuid-like names are integers; slug, hash, token and the rest are strings."""
    lowered = name.lower()
    if any(marker in lowered for marker in STRING_NAMES):
        return "string"
    if lowered == "id" or lowered.endswith("_id") or name.endswith("Id") or "uuid" in lowered:
        return "integer"
    return "string"


def model_key_type(model: type) -> str:
    """Path parameter type for a model bound by its primary key."""
    key_type = getattr(model, "key_type", None)
    if key_type is None:
        return "integer"
    if inspect.isclass(key_type):
        return BUILTIN_TYPES.get(key_type, "integer")
    return KEY_TYPES.get(str(key_type).lower(), "integer")


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


class RouteFactExtractor:
    def __init__(self, classifier: MiddlewareClassifier, cache: AnalysisCache):
        self.classifier = classifier
        self.cache = cache

    def analyze(self, route: RouteRecord, info: HandlerInfo | None = None) -> dict:
        uri = route.normalized_uri
        facts = self._route_facts(route)
        return {
            "path_parameters": self.path_parameter_types(uri, info),
            "auth": facts["auth"],
            "custom_headers": facts["custom_headers"],
            "rate_limit": facts["rate_limit"],
            "api_version": facts["api_version"],
            "middleware": facts["middleware"],
        }

    def _route_facts(self, route: RouteRecord) -> dict:
        names = ",".join(middleware_name(m) for m in route.middleware)
        identifier = f"{route.name or route.normalized_uri}|{route.handler.reference}|{names}"
        cached = self.cache.get("route", identifier)
        if cached is not None:
            logger.debug("Cache hit for route facts of %s", route.normalized_uri)
            return cached

        facts = {
            "auth": self.classifier.determine_auth(route.middleware),
            "custom_headers": self.extract_custom_headers(route),
            "rate_limit": self.classifier.extract_rate_limit(route.middleware),
            "api_version": self.extract_api_version(route.normalized_uri),
            "middleware": self.classifier.classify(route.middleware),
        }
        self.cache.put("route", identifier, facts)
        return facts

    def extract_path_params(self, uri: str) -> list[str]:
        return [m.group(1) for m in PATH_PARAM.finditer(uri)]

    def path_parameter_types(self, uri: str, info: HandlerInfo | None) -> dict[str, dict]:
        if info is None:
            return self._path_parameter_types(uri, None)
        digest = hashlib.md5(info.reference.encode()).hexdigest()
        return self.cache.remember(
            "path_params",
            f"{uri}:{digest}",
            info.source_file,
            lambda: self._path_parameter_types(uri, info),
        )

    def _path_parameter_types(self, uri: str, info: HandlerInfo | None) -> dict[str, dict]:
        params = {}
        for match in PATH_PARAM.finditer(uri):
            name, optional = match.group(1), match.group(2)
            annotation = info.parameters.get(name) if info is not None else None
            params[name] = {
                "type": self._type_for(annotation) or parameter_type_from_name(name),
                "required": not optional,
            }
        return params

    def _type_for(self, annotation: Any) -> str | None:
        if annotation is None:
            return None
        if isinstance(annotation, str):
            return ANNOTATION_NAMES.get(annotation)
        annotation = _unwrap_optional(annotation)
        if annotation in BUILTIN_TYPES:
            return BUILTIN_TYPES[annotation]
        if inspect.isclass(annotation):
            return model_key_type(annotation)
        return None

    def extract_api_version(self, uri: str) -> str | None:
        match = API_VERSION.search(uri)
        return match.group(1) if match else None

    def extract_custom_headers(self, route: RouteRecord) -> list[dict]:
        headers = []
        if "webhook" in route.handler.reference.lower():
            headers.append({
                "name": "X-Signature",
                "required": True,
                "description": "Webhook signature for request validation",
            })
        headers.extend(self.classifier.extract_required_headers(route.middleware))

        seen = set()
        unique = []
        for header in headers:
            if header["name"] not in seen:
                seen.add(header["name"])
                unique.append(header)
        return unique
