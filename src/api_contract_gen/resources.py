"""Serializer base classes.

Applications may subclass these or provide any class with the same shape:
``make``/``collection`` factories, ``resolve()`` for a single record and
``to_response()`` for the full response body. The schema synthesizer only
relies on that shape.
"""

import dataclasses
import math
from datetime import date, datetime
from typing import Any


class JsonResource:
    """Serializes a single model instance."""

    def __init__(self, resource: Any):
        self.resource = resource

    @classmethod
    def make(cls, resource: Any) -> "JsonResource":
        return cls(resource)

    @classmethod
    def collection(cls, resource: Any) -> "ResourceCollection":
        return AnonymousResourceCollection(resource, collects=cls)

    def to_dict(self) -> Any:
        """Override to shape the output. Defaults to the model's public attributes."""
        return _attributes(self.resource)

    def resolve(self) -> Any:
        return resolve_value(self.to_dict())

    def to_response(self) -> dict:
        return {"data": self.resolve()}


class ResourceCollection(JsonResource):
    """Serializes a list or a Paginator of model instances."""

    is_collection = True
    collects: type[JsonResource] | None = None

    def items(self) -> list:
        if isinstance(self.resource, Paginator):
            return list(self.resource.items)
        return list(self.resource)

    def to_dict(self) -> Any:
        if self.collects is None:
            return [_attributes(item) for item in self.items()]
        return [self.collects(item).resolve() for item in self.items()]

    def to_response(self) -> dict:
        body = {"data": self.resolve()}
        if isinstance(self.resource, Paginator):
            body["links"] = self.resource.links()
            body["meta"] = self.resource.meta()
        return body


class AnonymousResourceCollection(ResourceCollection):
    def __init__(self, resource: Any, collects: type[JsonResource]):
        super().__init__(resource)
        self.collects = collects


class Paginator:
    """A length-aware page of items."""

    def __init__(self, items: list, total: int, per_page: int = 15, current_page: int = 1, path: str = "/"):
        self.items = list(items)
        self.total = total
        self.per_page = per_page
        self.current_page = current_page
        self.path = path

    @property
    def last_page(self) -> int:
        return max(math.ceil(self.total / self.per_page), 1)

    def url(self, page: int) -> str:
        return f"{self.path}?page={page}"

    def links(self) -> dict:
        return {
            "first": self.url(1),
            "last": self.url(self.last_page),
            "prev": self.url(self.current_page - 1) if self.current_page > 1 else None,
            "next": self.url(self.current_page + 1) if self.current_page < self.last_page else None,
        }

    def meta(self) -> dict:
        first = (self.current_page - 1) * self.per_page + 1 if self.items else None
        return {
            "current_page": self.current_page,
            "from": first,
            "last_page": self.last_page,
            "path": self.path,
            "per_page": self.per_page,
            "to": first + len(self.items) - 1 if first is not None else None,
            "total": self.total,
        }


def resolve_value(value: Any) -> Any:
    """Turn nested resources, dates and containers into plain JSON values."""
    if isinstance(value, JsonResource):
        return value.resolve()
    if isinstance(value, dict):
        return {str(k): resolve_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [resolve_value(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _attributes(obj: Any) -> dict:
    if isinstance(obj, dict):
        return dict(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    return {k: v for k, v in vars(obj).items() if not k.startswith("_")}
