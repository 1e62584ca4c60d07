"""Probable HTTP status codes of a handler, from its body and name."""

import ast
import logging
from http import HTTPStatus

from api_contract_gen.analyzer.source import find_function
from api_contract_gen.cache.analysis import AstCache
from api_contract_gen.routing.reflection import HandlerInfo

logger = logging.getLogger(__name__)

DESCRIPTIONS = {
    200: "OK",
    201: "Created",
    202: "Accepted",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    503: "Service Unavailable",
}
COMMON_ERRORS = (400, 401, 404, 422, 500)
STATUS_KEYWORDS = ("status", "status_code", "code")
ABORT_FUNCTIONS = ("abort", "HTTPException", "HttpError", "HTTPError")


def describe(code: int) -> str:
    return DESCRIPTIONS.get(code, f"HTTP {code}")


class StatusCodeAnalyzer:
    def __init__(self, ast_cache: AstCache):
        self.ast_cache = ast_cache

    def analyze(self, info: HandlerInfo) -> dict[str, str]:
        codes = set(self._codes_from_body(info))

        name = info.name.lower()
        if "store" in name or "create" in name:
            codes.add(201)
        elif "destroy" in name or "delete" in name:
            codes.add(204)
        else:
            codes.add(200)
        codes.update(COMMON_ERRORS)

        return {str(code): describe(code) for code in sorted(codes)}

    def _codes_from_body(self, info: HandlerInfo):
        if not info.source_file:
            return
        tree = self.ast_cache.get(info.source_file)
        if tree is None:
            return
        function = find_function(tree, info.name, info.start_line, info.end_line)
        if function is None:
            return

        for node in ast.walk(function):
            if isinstance(node, ast.Call):
                yield from _call_codes(node)
            elif isinstance(node, ast.Return) and isinstance(node.value, ast.Tuple):
                # return body, 201
                code = _status_literal(node.value.elts[-1]) if len(node.value.elts) > 1 else None
                if code:
                    yield code


def _call_codes(call: ast.Call):
    for keyword in call.keywords:
        if keyword.arg in STATUS_KEYWORDS:
            code = _status_literal(keyword.value)
            if code:
                yield code

    func = call.func
    name = func.id if isinstance(func, ast.Name) else func.attr if isinstance(func, ast.Attribute) else None
    if name in ABORT_FUNCTIONS and call.args:
        code = _status_literal(call.args[0])
        if code:
            yield code


def _status_literal(node: ast.AST) -> int | None:
    if isinstance(node, ast.Constant) and type(node.value) is int and 100 <= node.value <= 599:
        return node.value
    # HTTPStatus.CREATED and friends
    if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id == "HTTPStatus":
        return _http_status(node.attr)
    return None


def _http_status(name: str) -> int | None:
    try:
        return HTTPStatus[name].value
    except KeyError:
        return None
