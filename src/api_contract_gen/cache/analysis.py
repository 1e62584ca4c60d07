"""Analysis result caching, invalidated by source file modification time."""

import ast
import copy
import hashlib
import logging
from pathlib import Path
from typing import Any

from api_contract_gen.cache.store import CacheStore, MemoryStore

logger = logging.getLogger(__name__)

ANALYSIS_PREFIX = "api_contract_analysis:"
AST_PREFIX = "api_contract_ast:"
DEFAULT_TTL = 3600
AST_TTL = 7200


def file_mtime(path: str | Path) -> float | None:
    try:
        return Path(path).stat().st_mtime
    except OSError:
        return None


class AnalysisCache:
    """Memoizes analysis results by (type, identifier).

    Types in use: route, path_params, validator, resource, resource_failure,
    serializer_lookup.
    """

    def __init__(self, store: CacheStore | None = None, ttl: int = DEFAULT_TTL):
        self.store = store if store is not None else MemoryStore()
        self.ttl = ttl

    def _key(self, type_: str, identifier: str) -> str:
        return f"{ANALYSIS_PREFIX}{type_}:{hashlib.md5(identifier.encode()).hexdigest()}"

    def get(self, type_: str, identifier: str) -> Any:
        # callers own the returned value; the stored one is never shared
        return copy.deepcopy(self.store.get(self._key(type_, identifier)))

    def put(self, type_: str, identifier: str, value: Any, ttl: int | None = None) -> None:
        self.store.put(self._key(type_, identifier), copy.deepcopy(value), ttl if ttl is not None else self.ttl)

    def has(self, type_: str, identifier: str) -> bool:
        return self.store.has(self._key(type_, identifier))

    def forget(self, type_: str, identifier: str) -> None:
        self.store.forget(self._key(type_, identifier))

    def clear(self) -> int:
        return self.clear_type("")

    def clear_type(self, type_: str) -> int:
        """Forget every entry of one analysis type. Returns the number removed."""
        prefix = f"{ANALYSIS_PREFIX}{type_}:" if type_ else ANALYSIS_PREFIX
        removed = 0
        for key in self.store.keys():
            if key.startswith(prefix):
                self.store.forget(key)
                removed += 1
        return removed

    def is_valid_for_file(self, type_: str, identifier: str, file_path: str | Path | None) -> bool:
        """True when the cached value for identifier was computed against the
        file's current mtime.

        On a mismatch the cached value is forgotten and the new mtime recorded;
        the caller must recompute and put() the value again.
        """
        if file_path is None:
            return False
        current = file_mtime(file_path)
        if current is None:
            return False

        cached = self.get(type_, f"{identifier}:mtime")
        if cached is None or float(cached) != current:
            logger.debug("Cache stale for %s:%s (%s)", type_, identifier, file_path)
            self.forget(type_, identifier)
            self.put(type_, f"{identifier}:mtime", current)
            return False
        return True

    def store_file_mtime(self, type_: str, identifier: str, file_path: str | Path | None) -> None:
        if file_path is None:
            return
        current = file_mtime(file_path)
        if current is not None:
            self.put(type_, f"{identifier}:mtime", current)

    def remember(self, type_: str, identifier: str, file_path: str | Path | None, compute) -> Any:
        """Return the cached value if still valid for file_path, else compute and store it."""
        if self.is_valid_for_file(type_, identifier, file_path):
            cached = self.get(type_, identifier)
            if cached is not None:
                logger.debug("Cache hit for %s:%s", type_, identifier)
                return cached
        value = compute()
        if value is not None:
            self.put(type_, identifier, value)
        return value


class AstCache:
    """Parsed module trees keyed by (path, mtime).

    Trees are kept in-process only; the backing store records which
    (path, mtime) pairs were parsed so their expiry follows the AST TTL.
    """

    def __init__(self, store: CacheStore | None = None, ttl: int = AST_TTL):
        self.store = store if store is not None else MemoryStore()
        self.ttl = ttl
        self._trees: dict[str, ast.Module] = {}
        self._sources: dict[str, str] = {}

    def _key(self, path: str, mtime: float) -> str:
        return AST_PREFIX + hashlib.md5(f"{path}:{mtime}".encode()).hexdigest()

    def has(self, path: str) -> bool:
        mtime = file_mtime(path)
        if mtime is None:
            return False
        key = self._key(path, mtime)
        return key in self._trees and self.store.has(key)

    def get(self, path: str) -> ast.Module | None:
        """Parse (or reuse) the module at path. None if unreadable or invalid."""
        mtime = file_mtime(path)
        if mtime is None:
            return None
        key = self._key(path, mtime)
        if key in self._trees and self.store.has(key):
            return self._trees[key]

        source = self.source(path)
        if source is None:
            return None
        try:
            tree = ast.parse(source, filename=path)
        except SyntaxError as e:
            logger.debug("Could not parse %s: %s", path, e)
            return None
        self._trees[key] = tree
        self.store.put(key, {"path": path, "mtime": mtime}, self.ttl)
        return tree

    def source(self, path: str) -> str | None:
        mtime = file_mtime(path)
        if mtime is None:
            return None
        key = self._key(path, mtime)
        if key not in self._sources:
            try:
                self._sources[key] = Path(path).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.debug("Could not read %s: %s", path, e)
                return None
        return self._sources[key]
