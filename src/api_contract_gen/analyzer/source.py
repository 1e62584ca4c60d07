"""Recover the serializer class a handler builds, by reading its source.

Best-effort and heuristic: the handler is never executed. The handler's module
is parsed with ``ast`` and the body of the handler function is searched for
the usual serialization idioms. When the module cannot be parsed the same
idioms are matched with regular expressions over the handler's source text.
"""

import ast
import inspect
import logging
import re
from pathlib import Path

from api_contract_gen.cache.analysis import AnalysisCache, AstCache
from api_contract_gen.routing.reflection import HandlerInfo, dotted_name, locate

logger = logging.getLogger(__name__)

FACTORY_METHODS = ("make", "collection")
JSON_BUILDERS = ("json", "jsonify", "JSONResponse")
COLLECTION_CONVERTER = "to_resource_collection"


class SourceHeuristicResolver:
    def __init__(
        self,
        ast_cache: AstCache,
        resources_namespace: str,
        resources_path: str | Path | None = None,
        subnamespaces: list[str] | None = None,
        suffixes: list[str] | None = None,
        response_helpers: list[str] | None = None,
        cache: AnalysisCache | None = None,
    ):
        self.ast_cache = ast_cache
        self.resources_namespace = resources_namespace
        self.resources_path = Path(resources_path) if resources_path else None
        self.subnamespaces = subnamespaces or []
        self.suffixes = tuple(suffixes or ("Resource", "Collection"))
        self.response_helpers = response_helpers or []
        self.cache = cache
        self.available: dict[str, str] = {}
        self._response_classes: dict[str, str | None] = {}

    def preload(self) -> dict[str, str]:
        """Record every serializer class under resources_path as {ShortName: dotted}."""
        if self.resources_path is None or not self.resources_path.is_dir():
            logger.debug("No resources directory at %s", self.resources_path)
            return self.available

        for path in sorted(self.resources_path.rglob("*.py")):
            tree = self.ast_cache.get(str(path))
            if tree is None:
                continue
            module = self._module_for(path)
            for node in tree.body:
                if isinstance(node, ast.ClassDef) and node.name.endswith(self.suffixes):
                    self.available.setdefault(node.name, f"{module}.{node.name}")

        logger.debug("Preloaded %d serializers from %s", len(self.available), self.resources_path)
        return self.available

    def _module_for(self, path: Path) -> str:
        parts = list(path.relative_to(self.resources_path).with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        return ".".join([self.resources_namespace, *parts])

    def find_serializer_for_handler(self, info: HandlerInfo) -> str | None:
        if self.cache is None:
            return self._find(info)
        found = self.cache.remember(
            "serializer_lookup",
            info.reference,
            info.source_file,
            lambda: {"serializer": self._find(info)},
        )
        return found["serializer"]

    def _find(self, info: HandlerInfo) -> str | None:
        if not info.source_file:
            return None

        tree = self.ast_cache.get(info.source_file)
        if tree is None:
            return self._find_in_text(info)

        node = find_function(tree, info.name, info.start_line, info.end_line)
        if node is None:
            logger.debug("Handler %s not found in %s", info.name, info.source_file)
            return None

        imports = _import_map(tree, info.module)
        for short in self._candidates_from_ast(node):
            resolved = self.resolve_class_name(short, imports, info.module)
            if resolved:
                logger.debug("Serializer for %s: %s", info.reference, resolved)
                return resolved
        return None

    def _candidates_from_ast(self, function: ast.AST):
        """Yield serializer names in pattern order."""
        calls = sorted(
            (n for n in ast.walk(function) if isinstance(n, ast.Call)),
            key=lambda n: (n.lineno, n.col_offset),
        )

        # 1. X.make(...) / X.collection(...)
        for call in calls:
            name = self._factory_call(call)
            if name:
                yield name

        # 2. X(...)
        for call in calls:
            name = self._constructor_call(call)
            if name:
                yield name

        # 3. response helpers wrapping 1 or 2, or a bare serializer class
        for call in calls:
            if _dotted(call.func) in self.response_helpers and call.args:
                first = call.args[0]
                name = None
                if isinstance(first, ast.Call):
                    name = self._factory_call(first) or self._constructor_call(first)
                elif self._is_serializer_ref(first):
                    name = _dotted(first)
                if name:
                    yield name

        # 4. query.to_resource_collection(X)
        for call in calls:
            if isinstance(call.func, ast.Attribute) and call.func.attr == COLLECTION_CONVERTER:
                for arg in call.args:
                    if self._is_serializer_ref(arg):
                        yield _dotted(arg)

        # 5. json(...) builders embedding 1
        for call in calls:
            func = _dotted(call.func)
            if func and func.rsplit(".", 1)[-1] in JSON_BUILDERS:
                for arg in [*call.args, *(k.value for k in call.keywords)]:
                    for inner in ast.walk(arg):
                        if isinstance(inner, ast.Call):
                            name = self._factory_call(inner)
                            if name:
                                yield name

    def _factory_call(self, call: ast.Call) -> str | None:
        func = call.func
        if isinstance(func, ast.Attribute) and func.attr in FACTORY_METHODS and self._is_serializer_ref(func.value):
            return _dotted(func.value)
        return None

    def _constructor_call(self, call: ast.Call) -> str | None:
        if self._is_serializer_ref(call.func):
            return _dotted(call.func)
        return None

    def _is_serializer_ref(self, node: ast.AST) -> bool:
        name = _dotted(node)
        return bool(name) and name.rsplit(".", 1)[-1].endswith(self.suffixes)

    def _find_in_text(self, info: HandlerInfo) -> str | None:
        try:
            text = inspect.getsource(info.func)
        except (OSError, TypeError):
            return None

        suffix = "|".join(re.escape(s) for s in self.suffixes)
        name = rf"([A-Za-z_][\w.]*(?:{suffix}))"
        helpers = "|".join(re.escape(h) for h in self.response_helpers) or r"(?!x)x"
        patterns = [
            rf"\b{name}\.(?:make|collection)\(",
            rf"\b{name}\(",
            rf"\b(?:{helpers})\(\s*{name}",
            rf"\.{COLLECTION_CONVERTER}\(\s*{name}\s*[,)]",
            rf"\b(?:json|jsonify|JSONResponse)\([^;]*?{name}\.(?:make|collection)\(",
        ]

        source = self.ast_cache.source(info.source_file) or text
        imports = _import_map_from_text(source)
        for pattern in patterns:
            for match in re.finditer(pattern, text, re.DOTALL):
                resolved = self.resolve_class_name(match.group(1), imports, info.module)
                if resolved:
                    logger.debug("Serializer for %s (text match): %s", info.reference, resolved)
                    return resolved
        return None

    def resolve_class_name(self, short: str, imports: dict[str, str], module: str | None = None) -> str | None:
        """Resolve a name as written in the handler's module to a dotted class path."""
        candidates = []

        head, _, rest = short.partition(".")
        if head in imports:
            candidates.append(f"{imports[head]}.{rest}" if rest else imports[head])
        if module:
            candidates.append(f"{module}.{short}")

        base = short.rsplit(".", 1)[-1]
        if base in self.available:
            candidates.append(self.available[base])
        candidates.append(f"{self.resources_namespace}.{base}")
        candidates.extend(f"{self.resources_namespace}.{sub}.{base}" for sub in self.subnamespaces)

        for candidate in candidates:
            if inspect.isclass(locate(candidate)):
                return candidate
        return None

    def inspect_response_class(self, cls: type) -> str | None:
        """Serializer imported by a response-wrapper class's module.

        Prefers a Collection import when the class name mentions Index.
        """
        key = dotted_name(cls)
        if key in self._response_classes:
            return self._response_classes[key]

        result = None
        try:
            source_file = inspect.getsourcefile(cls)
        except TypeError:
            source_file = None

        tree = self.ast_cache.get(source_file) if source_file else None
        if tree is not None:
            imported = [
                target for target in _import_map(tree, cls.__module__).values()
                if target.startswith(self.resources_namespace + ".")
                and target.rsplit(".", 1)[-1].endswith(self.suffixes)
            ]
            if imported:
                result = imported[0]
                if "Index" in cls.__name__:
                    result = next((t for t in imported if "Collection" in t), result)

        self._response_classes[key] = result
        return result


def _dotted(node: ast.AST) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = _dotted(node.value)
        return f"{base}.{node.attr}" if base else None
    return None


def find_function(tree: ast.Module, name: str, start: int | None, end: int | None) -> ast.AST | None:
    fallback = None
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)) and node.name == name:
            if start is None or end is None or start <= node.lineno <= end:
                return node
            fallback = fallback or node
    return fallback


def _import_map(tree: ast.Module, module: str | None) -> dict[str, str]:
    """Local name -> dotted target for every import in the module."""
    imports = {}
    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom):
            source = _absolute(node.module or "", node.level, module)
            for alias in node.names:
                if alias.name == "*":
                    continue
                imports[alias.asname or alias.name] = f"{source}.{alias.name}" if source else alias.name
        elif isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    imports[alias.asname] = alias.name
                else:
                    top = alias.name.split(".")[0]
                    imports.setdefault(top, top)
    return imports


def _absolute(target: str, level: int, module: str | None) -> str:
    if level == 0 or not module:
        return target
    package = module.split(".")[:-level]
    return ".".join([*package, target] if target else package)


_FROM_IMPORT = re.compile(r"^\s*from\s+([\w.]+)\s+import\s+\(?([^)\n]+)\)?", re.MULTILINE)
_IMPORT_AS = re.compile(r"^\s*import\s+([\w.]+)\s+as\s+(\w+)", re.MULTILINE)


def _import_map_from_text(source: str) -> dict[str, str]:
    imports = {}
    for match in _FROM_IMPORT.finditer(source):
        module = match.group(1)
        for item in match.group(2).split(","):
            name, _, alias = item.strip().partition(" as ")
            if name:
                imports[alias.strip() or name.strip()] = f"{module}.{name.strip()}"
    for match in _IMPORT_AS.finditer(source):
        imports[match.group(2)] = match.group(1)
    return imports
