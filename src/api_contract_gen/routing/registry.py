"""Load the host application's route table."""

import importlib
import logging
from typing import Any, Iterable

from api_contract_gen.errors import ConfigError
from api_contract_gen.routing.base import RouteRecord

logger = logging.getLogger(__name__)


def load_routes(reference: str | None) -> list[RouteRecord]:
    """Import 'package.module:attribute' and turn it into RouteRecords.

    The attribute may be an iterable of routes, a zero-argument callable
    returning one, or an object with a routes() method. Each route is a
    RouteRecord, a dict of RouteRecord.define keyword arguments, or a
    (uri, methods, handler[, middleware[, name]]) tuple.
    """
    if not reference:
        raise ConfigError("No route table configured. Set 'routes: package.module:attribute'.")

    module_name, _, attr = reference.partition(":")
    if not attr:
        raise ConfigError(f"Invalid routes reference '{reference}'. Expected 'package.module:attribute'.")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Could not import route module '{module_name}': {e}") from e

    try:
        source = getattr(module, attr)
    except AttributeError as e:
        raise ConfigError(f"Module '{module_name}' has no attribute '{attr}'") from e

    if hasattr(source, "routes") and callable(source.routes):
        source = source.routes()
    elif callable(source):
        source = source()

    routes = [_coerce(item) for item in source]
    logger.debug("Loaded %d routes from %s", len(routes), reference)
    return routes


def _coerce(item: Any) -> RouteRecord:
    if isinstance(item, RouteRecord):
        return item
    if isinstance(item, dict):
        return RouteRecord.define(**item)
    if isinstance(item, (tuple, list)):
        return RouteRecord.define(*item)
    raise ConfigError(f"Unsupported route definition: {item!r}")


def api_routes(routes: Iterable[RouteRecord], prefix: str) -> list[RouteRecord]:
    """Keep routes whose URI starts with the API prefix (e.g. 'api/')."""
    prefix = prefix.lstrip("/")
    return [r for r in routes if r.uri.lstrip("/").startswith(prefix)]
