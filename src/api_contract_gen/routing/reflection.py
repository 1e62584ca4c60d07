"""Handler reflection: signatures, annotations and source locations."""

import importlib
import inspect
import logging
import typing
from dataclasses import dataclass, field
from typing import Any

from api_contract_gen.errors import RouteAnalysisError
from api_contract_gen.routing.base import ClosureHandler, ControllerHandler, Handler

logger = logging.getLogger(__name__)


@dataclass
class HandlerInfo:
    """Everything the analyzers need to know about one handler."""

    reference: str
    func: Any
    name: str
    module: str | None
    owner: type | None = None
    source_file: str | None = None
    start_line: int | None = None
    end_line: int | None = None
    parameters: dict[str, Any] = field(default_factory=dict)
    return_annotation: Any = None
    docstring: str | None = None

    @property
    def has_return_annotation(self) -> bool:
        return self.return_annotation is not None


def locate(dotted: str) -> Any | None:
    """Import 'package.module.Name' (nested attributes allowed). None if missing."""
    parts = dotted.split(".")
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            obj = importlib.import_module(module_name)
        except ImportError:
            continue
        try:
            for attr in parts[split:]:
                obj = getattr(obj, attr)
        except AttributeError:
            return None
        return obj
    return None


def dotted_name(obj: Any) -> str:
    return f"{obj.__module__}.{obj.__qualname__}"


class HandlerInspector:
    """Reflects route handlers, memoized per handler reference for one run."""

    def __init__(self):
        self._cache: dict[str, HandlerInfo] = {}

    def inspect(self, handler: Handler) -> HandlerInfo:
        key = handler.reference
        if key not in self._cache:
            self._cache[key] = self._inspect(handler)
        return self._cache[key]

    def _inspect(self, handler: Handler) -> HandlerInfo:
        owner = None
        if isinstance(handler, ControllerHandler):
            if not handler.controller or not handler.method:
                raise RouteAnalysisError.invalid_action(handler.reference)
            try:
                owner = locate(handler.controller)
            except Exception as e:  # the controller module raised while importing
                raise RouteAnalysisError.controller_not_found(
                    handler.controller, f"import failed: {type(e).__name__}: {e}"
                ) from e
            if not inspect.isclass(owner):
                raise RouteAnalysisError.controller_not_found(handler.controller)
            func = getattr(owner, handler.method, None)
            if func is None or not callable(func):
                raise RouteAnalysisError.method_not_found(handler.controller, handler.method)
        elif isinstance(handler, ClosureHandler):
            func = handler.func
        else:
            raise RouteAnalysisError.invalid_action(repr(handler))

        func = inspect.unwrap(func)
        try:
            signature = inspect.signature(func)
        except (TypeError, ValueError) as e:
            raise RouteAnalysisError.reflection_failed(handler.reference, str(e)) from e

        hints = _type_hints(func)
        parameters = {}
        for name, param in signature.parameters.items():
            if name in ("self", "cls"):
                continue
            annotation = hints.get(name, param.annotation)
            parameters[name] = None if annotation is inspect.Parameter.empty else annotation

        return_annotation = hints.get("return", signature.return_annotation)
        if return_annotation is inspect.Signature.empty:
            return_annotation = None

        info = HandlerInfo(
            reference=handler.reference,
            func=func,
            name=getattr(func, "__name__", handler.reference),
            module=getattr(func, "__module__", None),
            owner=owner,
            parameters=parameters,
            return_annotation=return_annotation,
            docstring=inspect.getdoc(func),
        )
        _attach_source(info)
        return info


def _type_hints(func: Any) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func)
    except Exception as e:  # unresolvable forward references
        logger.debug("Falling back to raw annotations for %r: %s", func, e)
        return {}


def _attach_source(info: HandlerInfo) -> None:
    try:
        info.source_file = inspect.getsourcefile(info.func)
        lines, start = inspect.getsourcelines(info.func)
    except (OSError, TypeError):
        logger.debug("No source available for %s", info.reference)
        return
    info.start_line = start
    info.end_line = start + len(lines) - 1
