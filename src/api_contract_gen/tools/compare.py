"""Compare two contracts: added, removed and modified routes."""

import json

from api_contract_gen.tools.loader import route_table

COMPARED_FIELDS = ("auth", "request_schema", "response_schema", "path_parameters", "rate_limit")
# fields reported even when only one side has them
ONE_SIDED_FIELDS = ("auth", "request_schema", "response_schema")


def compare_contracts(old: dict, new: dict) -> dict:
    old, new = route_table(old), route_table(new)
    changes = []
    summary = {
        "added_routes": 0,
        "removed_routes": 0,
        "added_methods": 0,
        "removed_methods": 0,
        "modified_routes": 0,
        "schema_changes": 0,
        "auth_changes": 0,
    }

    for path, methods in new.items():
        if path not in old:
            changes.append({"type": "added_route", "path": path, "methods": list(methods), "details": methods})
            summary["added_routes"] += 1
            continue
        for method, entry in methods.items():
            if method not in old[path]:
                changes.append({"type": "added_method", "path": path, "method": method, "details": entry})
                summary["added_methods"] += 1
                continue
            diff = compare_entries(old[path][method], entry)
            if diff:
                changes.append({"type": "modified_route", "path": path, "method": method, "changes": diff})
                summary["modified_routes"] += 1
                if "auth" in diff:
                    summary["auth_changes"] += 1
                if "request_schema" in diff or "response_schema" in diff:
                    summary["schema_changes"] += 1

    for path, methods in old.items():
        if path not in new:
            changes.append({"type": "removed_route", "path": path, "methods": list(methods), "details": methods})
            summary["removed_routes"] += 1
            continue
        for method, entry in methods.items():
            if method not in new[path]:
                changes.append({"type": "removed_method", "path": path, "method": method, "details": entry})
                summary["removed_methods"] += 1

    return {"summary": summary, "changes": changes}


def compare_entries(old: dict, new: dict) -> dict:
    changes = {}
    for name in COMPARED_FIELDS:
        in_old, in_new = old.get(name) is not None, new.get(name) is not None
        if in_old and in_new:
            if _canonical(old[name]) != _canonical(new[name]):
                changes[name] = {"old": old[name], "new": new[name]}
        elif (in_old or in_new) and name in ONE_SIDED_FIELDS:
            changes[name] = {"old": old.get(name), "new": new.get(name)}
    return changes


def _canonical(value) -> str:
    return json.dumps(value, sort_keys=True)
