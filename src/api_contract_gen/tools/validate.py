"""Diff the live route table against the persisted contract."""

from api_contract_gen.routing.base import RouteRecord
from api_contract_gen.routing.registry import api_routes
from api_contract_gen.tools.loader import route_table


def current_routes(routes: list[RouteRecord], prefix: str = "api/") -> dict[str, list[str]]:
    table: dict[str, list[str]] = {}
    for route in api_routes(routes, prefix):
        for method in route.methods:
            if method == "HEAD":
                continue
            methods = table.setdefault(route.normalized_uri, [])
            if method not in methods:
                methods.append(method)
    return table


def validate_contract(contract: dict, routes: list[RouteRecord], prefix: str = "api/") -> dict:
    current = current_routes(routes, prefix)
    documented = {path: list(methods) for path, methods in route_table(contract).items()}

    issues = []
    summary = {
        "new_routes": 0,
        "removed_routes": 0,
        "method_changes": 0,
        "total_current": len(current),
        "total_contract": len(documented),
    }

    for path, methods in current.items():
        if path not in documented:
            issues.append({
                "type": "new_route",
                "path": path,
                "methods": methods,
                "message": f"New route found: {path} with methods: {', '.join(methods)}",
            })
            summary["new_routes"] += 1
            continue
        for method in methods:
            if method not in documented[path]:
                issues.append({
                    "type": "new_method",
                    "path": path,
                    "method": method,
                    "message": f"New HTTP method found: {method} for route {path}",
                })
                summary["method_changes"] += 1

    for path, methods in documented.items():
        if path not in current:
            issues.append({
                "type": "removed_route",
                "path": path,
                "methods": methods,
                "message": f"Route removed from code: {path} with methods: {', '.join(methods)}",
            })
            summary["removed_routes"] += 1
            continue
        for method in methods:
            if method not in current[path]:
                issues.append({
                    "type": "removed_method",
                    "path": path,
                    "method": method,
                    "message": f"HTTP method removed: {method} for route {path}",
                })
                summary["method_changes"] += 1

    return {"valid": not issues, "issues": issues, "summary": summary}
