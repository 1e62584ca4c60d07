"""List contract routes with filtering and pagination."""

import math

from api_contract_gen.tools.loader import METADATA_KEY, iter_entries

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def list_routes(
    contract: dict,
    method: str | None = None,
    version: str | None = None,
    search: str | None = None,
    page: int | None = None,
    offset: int | None = None,
    limit: int = DEFAULT_LIMIT,
    include_metadata: bool = False,
) -> dict:
    limit = min(max(int(limit), 1), MAX_LIMIT)
    method = method.upper() if method else None

    routes = []
    for path, http_method, entry in iter_entries(contract):
        if method and http_method != method:
            continue
        if version and entry.get("api_version") != version:
            continue
        if search and not matches_search(path, entry, search):
            continue
        routes.append(_summary(path, http_method, entry, include_metadata))

    routes.sort(key=lambda r: r["path"])

    total = len(routes)
    if page is not None:
        offset = (max(page, 1) - 1) * limit
    offset = max(offset or 0, 0)

    result = {
        "total": total,
        "limit": limit,
        "offset": offset,
        "page": offset // limit + 1,
        "total_pages": math.ceil(total / limit),
        "has_next": offset + limit < total,
        "has_previous": offset > 0,
        "routes": routes[offset:offset + limit],
    }
    if include_metadata and METADATA_KEY in contract:
        result["metadata"] = contract[METADATA_KEY]
    return result


def _summary(path: str, method: str, entry: dict, include_metadata: bool) -> dict:
    route = {
        "path": path,
        "method": method,
        "auth": (entry.get("auth") or {}).get("type", "none"),
        "api_version": entry.get("api_version"),
    }
    if include_metadata:
        for key in ("description", "deprecated", "rate_limit", "route_name", "error"):
            if entry.get(key) is not None:
                route[key] = entry[key]
    return route


def matches_search(path: str, entry: dict, search: str) -> bool:
    """Case-insensitive match on path, parameters, version, auth, rate limit and schema fields."""
    needle = search.lower()
    haystack = [path, entry.get("api_version") or "", (entry.get("auth") or {}).get("type", "")]
    haystack += list(entry.get("path_parameters") or [])

    rate_limit = entry.get("rate_limit") or {}
    haystack.append(rate_limit.get("name", ""))

    request = entry.get("request_schema") or {}
    haystack += list(request.get("properties") or {})
    haystack += _field_names(entry.get("response_schema") or {})

    return any(needle in str(value).lower() for value in haystack)


def _field_names(schema: dict) -> list[str]:
    names = []
    for name, prop in (schema.get("properties") or {}).items():
        names.append(name)
        if isinstance(prop, dict):
            names += _field_names(prop)
    items = schema.get("items")
    if isinstance(items, dict):
        names += _field_names(items)
    return names
