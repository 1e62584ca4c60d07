"""Route table models.

The host application hands over its routes as RouteRecord objects (or plain
dicts / tuples that RouteRecord.define accepts). Handlers are a closed
variant: a controller method referenced by string, or any callable.
"""

from typing import Any, Callable, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

HTTP_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


class ControllerHandler(BaseModel):
    """A 'package.module.Class@method' reference."""

    kind: Literal["controller"] = "controller"
    controller: str
    method: str

    @property
    def reference(self) -> str:
        return f"{self.controller}@{self.method}"


class ClosureHandler(BaseModel):
    """A callable registered directly as the route endpoint."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: Literal["closure"] = "closure"
    func: Callable

    @property
    def reference(self) -> str:
        module = getattr(self.func, "__module__", None) or "<unknown>"
        name = getattr(self.func, "__qualname__", None) or repr(self.func)
        return f"{module}.{name}"


Handler = Union[ControllerHandler, ClosureHandler]


class RouteRecord(BaseModel):
    """A single route as registered by the host application."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    uri: str
    methods: list[str]
    middleware: list[Any] = []
    handler: Handler = Field(discriminator="kind")
    name: str | None = None

    @property
    def normalized_uri(self) -> str:
        return "/" + self.uri.lstrip("/")

    @classmethod
    def define(
        cls,
        uri: str,
        methods: str | list[str],
        handler: str | Callable,
        middleware: list[Any] | None = None,
        name: str | None = None,
    ) -> "RouteRecord":
        """Build a route from the usual registration arguments.

        A string handler must look like 'pkg.module.Controller@method'; a
        malformed string is kept as a controller reference with an empty
        method so the failure surfaces per route during analysis.
        """
        if isinstance(methods, str):
            methods = [methods]
        return cls(
            uri=uri,
            methods=[m.upper() for m in methods],
            middleware=list(middleware or []),
            handler=parse_handler(handler),
            name=name,
        )


def parse_handler(handler: str | Callable) -> Handler:
    if isinstance(handler, str):
        controller, _, method = handler.partition("@")
        return ControllerHandler(controller=controller, method=method)
    return ClosureHandler(func=handler)
