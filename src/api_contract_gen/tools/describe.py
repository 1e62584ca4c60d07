"""Look up one route in the contract, by exact path or by template match."""

import re

from api_contract_gen.tools.loader import CONTRACT_METHODS, METADATA_KEY

UNDOCUMENTED = {"undocumented": True}

_OPTIONAL_SEGMENT = re.compile(r"/\\\{[^}]+\\\?\\\}")
_REQUIRED_SEGMENT = re.compile(r"\\\{[^}]+\\\}")


def template_pattern(template: str) -> re.Pattern:
    """'/api/v1/posts/{post}/{page?}' -> regex matching concrete paths."""
    escaped = re.escape(template)
    escaped = _OPTIONAL_SEGMENT.sub(lambda _: "(?:/[^/]+)?", escaped)
    escaped = _REQUIRED_SEGMENT.sub(lambda _: "[^/]+", escaped)
    return re.compile(f"^{escaped}$")


def find_route(contract: dict, path: str, method: str) -> dict | None:
    path = "/" + path.lstrip("/")

    exact = contract.get(path, {}).get(method) if path != f"/{METADATA_KEY}" else None
    if exact is not None:
        return {**exact, "matched_route": path}

    for template, methods in contract.items():
        if template in (path, METADATA_KEY) or not isinstance(methods, dict):
            continue
        if method in methods and template_pattern(template).match(path):
            return {**methods[method], "matched_route": template}
    return None


def describe_route(contract: dict, path: str, method: str = "GET") -> dict:
    method = method.upper()
    if method not in CONTRACT_METHODS:
        raise ValueError(f"Invalid HTTP method '{method}'. Must be one of: {', '.join(CONTRACT_METHODS)}.")
    return find_route(contract, path, method) or dict(UNDOCUMENTED)


def describe_routes(contract: dict, paths: list[str], methods: str | list[str] = "GET") -> dict:
    """Batch form: every (path, method) pair, invalid methods skipped."""
    if isinstance(methods, str):
        methods = [methods]

    results = []
    for path in paths:
        normalized = "/" + path.lstrip("/")
        for method in methods:
            method = method.upper()
            if method not in CONTRACT_METHODS:
                continue
            results.append({
                "path": normalized,
                "method": method,
                "data": find_route(contract, normalized, method) or dict(UNDOCUMENTED),
            })
    return {"batch_results": results, "total_operations": len(results)}
