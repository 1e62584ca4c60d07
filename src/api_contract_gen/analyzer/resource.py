"""Response schema synthesis.

The serializer behind a handler is located (return annotation, handler body,
response-wrapper class, then URI naming conventions), fed a fixture of its
model, and the serialized value is walked into a structural schema.
"""

import inspect
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable

from api_contract_gen.analyzer.examples import ExampleGenerator
from api_contract_gen.analyzer.source import SourceHeuristicResolver
from api_contract_gen.cache.analysis import AnalysisCache
from api_contract_gen.errors import AnalysisError, ResourceAnalysisError, UnexpectedError
from api_contract_gen.resources import Paginator, resolve_value
from api_contract_gen.routing.reflection import HandlerInfo, dotted_name, locate

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[AnalysisError], None]

DATE_FIELDS = ("publish_date", "published_at", "created_at", "updated_at", "deleted_at")
ROLE_SUFFIXES = re.compile(r"Resource|Overview|Collection|Serializer")
FRAMEWORK_MODULES = (
    "builtins", "typing", "collections", "api_contract_gen",
    "flask", "django", "starlette", "fastapi", "werkzeug", "aiohttp",
)
FACTORY_FAILED = {"undocumented": True, "error": "Factory failed"}

UNCOUNTABLE = {"news", "series", "species", "metadata", "information", "equipment", "settings"}
IRREGULAR = {"people": "person", "children": "child", "men": "man", "women": "woman", "mice": "mouse"}


def singularize(word: str) -> str:
    lowered = word.lower()
    if lowered in UNCOUNTABLE:
        return word
    if lowered in IRREGULAR:
        return word[0] + IRREGULAR[lowered][1:]
    if lowered.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lowered.endswith(("sses", "shes", "ches", "xes", "zes", "uses")):
        return word[:-2]
    if lowered.endswith("s") and not lowered.endswith("ss"):
        return word[:-1]
    return word


def json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return "string"


class SchemaSynthesizer:
    def __init__(
        self,
        cache: AnalysisCache,
        resolver: SourceHeuristicResolver,
        models_namespace: str,
        fixture_method: str = "fixture",
        json_response_types: list[str] | None = None,
    ):
        self.cache = cache
        self.resolver = resolver
        self.models_namespace = models_namespace
        self.fixture_method = fixture_method
        self.json_response_types = json_response_types or []
        self.examples = ExampleGenerator()

    @property
    def resources_namespace(self) -> str:
        return self.resolver.resources_namespace

    def extract_response_schema(self, info: HandlerInfo | None, uri: str, on_error: ErrorCallback) -> dict:
        if info is None:
            return self.fallback_to_heuristic(uri)
        try:
            schema = self._from_handler(info, on_error)
        except AnalysisError as e:
            on_error(e)
            schema = None
        except Exception as e:
            on_error(UnexpectedError.wrap(e, f"response schema of {info.reference}"))
            schema = None
        return schema or self.fallback_to_heuristic(uri)

    def _from_handler(self, info: HandlerInfo, on_error: ErrorCallback) -> dict | None:
        annotation = info.return_annotation
        if not (inspect.isclass(annotation) or isinstance(annotation, str)):
            return self._documented(self.resolver.find_serializer_for_handler(info), on_error)

        name = annotation if isinstance(annotation, str) else annotation.__name__

        if name.endswith(self.resolver.suffixes):
            if inspect.isclass(annotation):
                serializer = dotted_name(annotation)
            else:
                serializer = self.resolver.resolve_class_name(annotation, {}, info.module)
            schema = self._documented(serializer, on_error)
            if schema:
                return schema

        if name in self.json_response_types:
            schema = self._documented(self.resolver.find_serializer_for_handler(info), on_error)
            if schema:
                return schema

        if inspect.isclass(annotation) and not annotation.__module__.startswith(FRAMEWORK_MODULES):
            schema = self._documented(self.resolver.inspect_response_class(annotation), on_error)
            if schema:
                return schema
        return None

    def _documented(self, serializer: str | None, on_error: ErrorCallback | None) -> dict | None:
        if not serializer:
            return None
        schema = self.simulate(serializer, on_error)
        return None if schema.get("undocumented") else schema

    def resolve_response_schema(self, serializer: str | None, uri: str, on_error: ErrorCallback | None = None) -> dict:
        return self._documented(serializer, on_error) or self.fallback_to_heuristic(uri)

    def simulate(self, serializer: str, on_error: ErrorCallback | None = None) -> dict:
        """Schema of what serializer produces for a fixture of its model.

        Results, including fixture failures, are cached per serializer and
        invalidated when the serializer's source file changes. A cached
        failure is reported again through on_error.
        """
        cls = locate(serializer)
        source_file = _source_file(cls)

        if self.cache.is_valid_for_file("resource", serializer, source_file):
            cached = self.cache.get("resource", serializer)
            if cached is not None:
                failure = self.cache.get("resource_failure", serializer)
                if failure and on_error is not None:
                    on_error(ResourceAnalysisError(failure["message"], failure["error_code"], failure["context"]))
                return cached

        try:
            result = self._simulate(serializer, cls)
        except ResourceAnalysisError as e:
            logger.warning("%s", e.message)
            if on_error is not None:
                on_error(e)
            self.cache.put("resource_failure", serializer, e.to_dict())
            result = dict(FACTORY_FAILED)
        else:
            self.cache.forget("resource_failure", serializer)

        self.cache.put("resource", serializer, result)
        return result

    def _simulate(self, serializer: str, cls: Any) -> dict:
        short = serializer.rsplit(".", 1)[-1]
        if not inspect.isclass(cls):
            logger.debug("Serializer %s is not importable", serializer)
            return {"undocumented": True}

        model_name = ROLE_SUFFIXES.sub("", short)
        model = locate(f"{self.models_namespace}.{model_name}") if model_name else None
        if not inspect.isclass(model):
            logger.debug("No model %s for %s", model_name, serializer)
            return {"undocumented": True}

        factory = getattr(model, self.fixture_method, None)
        if not callable(factory):
            return {"undocumented": True, "hint": short}

        try:
            instance = factory()
            _backfill_dates(instance)
        except Exception as e:
            raise ResourceAnalysisError.fixture_failed(serializer, model_name, str(e)) from e

        try:
            if short.endswith("Collection") or getattr(cls, "is_collection", False):
                body = cls(Paginator([instance], total=1, per_page=15)).to_response()
            else:
                body = cls(instance).resolve()
        except Exception as e:
            raise ResourceAnalysisError.serialization_failed(serializer, str(e)) from e

        schema = self.data_to_schema(resolve_value(body))
        schema["example"] = self.examples.from_schema(schema)
        return schema

    def data_to_schema(self, value: Any) -> dict:
        if isinstance(value, dict):
            return {
                "type": "object",
                "properties": {str(k): self.data_to_schema(v) for k, v in value.items()},
            }
        if isinstance(value, (list, tuple)):
            first = value[0] if value else None
            if isinstance(first, (dict, list, tuple)):
                return {"type": "array", "items": self.data_to_schema(first)}
            return {"type": "array", "items": {"type": json_type(first)}}
        return {"type": json_type(value)}

    def fallback_to_heuristic(self, uri: str) -> dict:
        """Guess the serializer from the last non-parameter URI segment."""
        segments = [s for s in uri.strip("/").split("/") if s and not s.startswith("{")]
        if not segments:
            return {"undocumented": True}

        words = re.split(r"[-_]", segments[-1])
        words[-1] = singularize(words[-1])
        name = "".join(w[:1].upper() + w[1:] for w in words if w)
        if not name:
            return {"undocumented": True}

        for candidate in self.heuristic_candidates(name):
            if not inspect.isclass(locate(candidate)):
                continue
            schema = self.simulate(candidate)
            if not schema.get("undocumented"):
                logger.debug("Resolved %s by naming convention for %s", candidate, uri)
                return schema
        return {"undocumented": True}

    def heuristic_candidates(self, name: str) -> list[str]:
        ns = self.resources_namespace
        candidates = [
            f"{ns}.{name}Resource",
            f"{ns}.{name}OverviewResource",
            f"{ns}.{name}Collection",
        ]
        candidates += [f"{ns}.{sub}.{name}Resource" for sub in self.resolver.subnamespaces]
        candidates += [
            dotted for short, dotted in self.resolver.available.items()
            if name in short and short.endswith(("Resource", "Collection"))
        ]
        return list(dict.fromkeys(candidates))


def _source_file(obj: Any) -> str | None:
    if obj is None:
        return None
    try:
        return inspect.getsourcefile(obj)
    except TypeError:
        return None


def _backfill_dates(instance: Any) -> None:
    now = datetime.now(timezone.utc)
    for field in DATE_FIELDS:
        if isinstance(instance, dict):
            if field in instance and not instance[field]:
                instance[field] = now
        elif hasattr(instance, field) and not getattr(instance, field):
            setattr(instance, field, now)
