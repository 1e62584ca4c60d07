"""Contract generator: walks the route table and assembles the API contract."""

import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

import click

from api_contract_gen.analyzer.docstring import DocstringAnalyzer, describe_parameters
from api_contract_gen.analyzer.middleware import MiddlewareClassifier
from api_contract_gen.analyzer.resource import SchemaSynthesizer
from api_contract_gen.analyzer.route import RouteFactExtractor
from api_contract_gen.analyzer.rules import QUERY_METHODS, ValidatorAnalyzer
from api_contract_gen.analyzer.source import SourceHeuristicResolver
from api_contract_gen.analyzer.status_codes import StatusCodeAnalyzer
from api_contract_gen.cache.analysis import AnalysisCache, AstCache, file_mtime
from api_contract_gen.cache.store import CacheStore, MemoryStore
from api_contract_gen.config import Settings
from api_contract_gen.errors import AnalysisError, ContractWriteError, UnexpectedError
from api_contract_gen.generator.schema_validator import JsonSchemaValidator
from api_contract_gen.generator.transformers import SchemaTransformerRegistry
from api_contract_gen.generator.versions import ContractVersions
from api_contract_gen.routing.base import RouteRecord
from api_contract_gen.routing.reflection import HandlerInfo, HandlerInspector
from api_contract_gen.routing.registry import api_routes, load_routes
from api_contract_gen.tools.loader import METADATA_KEY, validate_structure

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
GENERATOR_NAME = "api-contract-gen"


@dataclass
class GenerationOptions:
    incremental: bool = False
    dry_run: bool = False
    validate_schemas: bool = False
    strict: bool = False
    detailed: bool = False


@dataclass
class RunContext:
    """Counters and findings of one generation run."""

    options: GenerationOptions
    warnings: list[AnalysisError] = field(default_factory=list)
    schema_errors: list[dict] = field(default_factory=list)
    reused: int = 0

    def warn(self, error: AnalysisError, where: str) -> None:
        self.warnings.append(error)
        logger.warning("%s: [%s] %s", where, error.code, error.message)
        if self.options.detailed:
            click.echo(f"Warning: {error.message}. Suggestion: {error.suggestion}", err=True)
        else:
            click.echo(f"Warning: {error.message}", err=True)

    @property
    def error_count(self) -> int:
        # strict mode counts every warning as an error
        return len(self.warnings) if self.options.strict else 0


@dataclass
class GenerationResult:
    contract: dict
    context: RunContext
    path: Path | None = None
    archived: Path | None = None

    @property
    def route_count(self) -> int:
        return sum(len(methods) for key, methods in self.contract.items() if key != METADATA_KEY)

    @property
    def exit_code(self) -> int:
        options = self.context.options
        if self.context.error_count:
            return 1
        if options.dry_run and self.context.schema_errors:
            return 1
        return 0


class ContractGenerator:
    """Builds the contract from the host application's routes."""

    def __init__(
        self,
        settings: Settings,
        routes: list[RouteRecord] | None = None,
        store: CacheStore | None = None,
        clock=None,
    ):
        self.settings = settings
        self._routes = routes
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.store = store if store is not None else MemoryStore()
        self.cache = AnalysisCache(self.store, settings.cache.ttl)
        self.ast_cache = AstCache(self.store, settings.cache.ast_ttl)
        self.inspector = HandlerInspector()
        self.classifier = MiddlewareClassifier(settings.rate_limiters, settings.passport)
        self.route_facts = RouteFactExtractor(self.classifier, self.cache)
        self.validators = ValidatorAnalyzer(self.cache, settings.request_types)
        self.resolver = SourceHeuristicResolver(
            self.ast_cache,
            settings.resources_namespace,
            resources_path=settings.resources_path,
            subnamespaces=settings.resource_subnamespaces,
            suffixes=settings.serializer_suffixes,
            response_helpers=settings.response_helpers,
            cache=self.cache,
        )
        self.synthesizer = SchemaSynthesizer(
            self.cache,
            self.resolver,
            settings.models_namespace,
            fixture_method=settings.fixture_method,
            json_response_types=settings.json_response_types,
        )
        self.docstrings = DocstringAnalyzer()
        self.status_codes = StatusCodeAnalyzer(self.ast_cache)
        self.transformers = SchemaTransformerRegistry.from_references(settings.transformers)
        self.schema_validator = JsonSchemaValidator()
        self.contract_path = Path(settings.contract_path)
        self.versions = ContractVersions(self.contract_path, settings.versions_path)

    @property
    def routes(self) -> list[RouteRecord]:
        if self._routes is None:
            self._routes = load_routes(self.settings.routes)
        return self._routes

    def generate(self, options: GenerationOptions | None = None) -> GenerationResult:
        try:
            return self._generate(options or GenerationOptions())
        finally:
            # cache writes are batched into one save per run
            self.store.save()

    def _generate(self, options: GenerationOptions) -> GenerationResult:
        ctx = RunContext(options)

        self.resolver.preload()
        previous, since = self._previous_contract() if options.incremental else ({}, None)
        watched = self._newest_watched_mtime()

        contract: dict = {}
        for route in api_routes(self.routes, self.settings.route_prefix):
            uri = route.normalized_uri
            for method in route.methods:
                if method == "HEAD":
                    continue
                if options.detailed:
                    click.echo(f"Processing {method} {uri} ... ", nl=False)

                entry = None
                if options.incremental:
                    entry = self._reusable_entry(previous, route, method, since, watched)
                if entry is None:
                    entry = self.analyze_entry(route, method, ctx)
                else:
                    ctx.reused += 1
                contract.setdefault(uri, {})[method] = entry

                if options.detailed:
                    click.echo("Done.")

        if options.validate_schemas:
            self._validate_schemas(contract, ctx)

        contract[METADATA_KEY] = self.metadata()
        result = GenerationResult(contract=contract, context=ctx)
        logger.info(
            "Analyzed %d routes (%d reused, %d warnings)", result.route_count, ctx.reused, len(ctx.warnings)
        )
        if options.dry_run:
            return result

        if not options.incremental:
            result.archived = self.versions.archive()
        write_contract(contract, self.contract_path)
        result.path = self.contract_path
        return result

    def analyze_entry(self, route: RouteRecord, method: str, ctx: RunContext) -> dict:
        """Analyze one route and method. Analysis failures degrade the entry, never raise."""
        uri = route.normalized_uri
        where = f"{method} {uri}"
        reported: list[AnalysisError] = []

        def on_error(error: AnalysisError) -> None:
            reported.append(error)
            ctx.warn(error, where)

        try:
            info = self.inspector.inspect(route.handler)
            facts = self.route_facts.analyze(route, info)
            request_schema = self.validators.extract_request_schema(info, method in QUERY_METHODS)
            response_schema = self.synthesizer.extract_response_schema(info, uri, on_error)
            docs = self.docstrings.analyze(info)
            status_codes = self.status_codes.analyze(info)
        except AnalysisError as e:
            ctx.warn(e, where)
            return self._placeholder(uri, e)
        except Exception as e:
            logger.debug("Unexpected failure for %s", where, exc_info=True)
            error = UnexpectedError.wrap(e, where)
            ctx.warn(error, where)
            return self._placeholder(uri, error)

        entry: dict = {}
        if docs["description"]:
            entry["description"] = docs["description"]
        if docs["deprecated"]:
            entry["deprecated"] = docs["deprecated"]
        entry.update({
            "auth": facts["auth"],
            "path_parameters": describe_parameters(facts["path_parameters"], docs["params"]),
            "request_schema": self.transformers.apply(request_schema) if self.transformers else request_schema,
            "response_schema": self.transformers.apply(response_schema) if self.transformers else response_schema,
            "custom_headers": facts["custom_headers"],
            "rate_limit": facts["rate_limit"],
            "api_version": facts["api_version"],
            "middleware": facts["middleware"],
        })
        if route.name:
            entry["route_name"] = route.name
        entry["status_codes"] = status_codes
        entry["content_negotiation"] = self.classifier.detect_content_negotiation(route.middleware)
        if reported:
            entry["error"] = reported[0].to_dict()
        return entry

    def _placeholder(self, uri: str, error: AnalysisError) -> dict:
        return {
            "auth": {"type": "none"},
            "path_parameters": self.route_facts.path_parameter_types(uri, None),
            "request_schema": {},
            "response_schema": {},
            "error": error.to_dict(),
        }

    def _previous_contract(self) -> tuple[dict, float | None]:
        if not self.contract_path.exists():
            return {}, None
        try:
            previous = json.loads(self.contract_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable previous contract %s: %s", self.contract_path, e)
            return {}, None
        if not validate_structure(previous):
            logger.warning("Ignoring previous contract %s with an invalid structure", self.contract_path)
            return {}, None
        return previous, file_mtime(self.contract_path)

    def _newest_watched_mtime(self) -> float | None:
        newest = None
        for watch_path in self.settings.watch_paths:
            path = Path(watch_path)
            files = path.rglob("*.py") if path.is_dir() else [path]
            for file in files:
                mtime = file_mtime(file)
                if mtime is not None and (newest is None or mtime > newest):
                    newest = mtime
        return newest

    def _reusable_entry(
        self, previous: dict, route: RouteRecord, method: str, since: float | None, watched: float | None
    ) -> dict | None:
        entry = previous.get(route.normalized_uri, {}).get(method)
        if entry is None or since is None:
            return None
        if watched is not None and watched > since:
            return None
        try:
            info: HandlerInfo = self.inspector.inspect(route.handler)
        except Exception:
            # re-analysis reports the failure
            return None
        handler_mtime = file_mtime(info.source_file) if info.source_file else None
        if handler_mtime is None or handler_mtime > since:
            return None
        logger.debug("Reusing previous entry for %s %s", method, route.normalized_uri)
        return entry

    def _validate_schemas(self, contract: dict, ctx: RunContext) -> None:
        for path, methods in contract.items():
            for method, entry in methods.items():
                for error in self.schema_validator.validate_entry(entry):
                    ctx.schema_errors.append({"route": path, "method": method, **error})

    def metadata(self) -> dict:
        return {
            "generated_at": self._clock().isoformat(),
            "git_revision": git_revision(),
            "schema_version": SCHEMA_VERSION,
            "generator": GENERATOR_NAME,
        }


def git_revision(cwd: Path | None = None) -> str | None:
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=cwd,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def write_contract(contract: dict, path: Path) -> None:
    """Write the contract as UTF-8 JSON, replacing the file atomically."""
    try:
        payload = json.dumps(contract, indent=4, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise ContractWriteError(f"Failed to encode contract to JSON: {e}") from e

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=str(path.parent), prefix=".tmp_", suffix=".json", encoding="utf-8"
        ) as tmp:
            tmp.write(payload)
            tmp_path = Path(tmp.name)
        os.replace(tmp_path, path)
    except OSError as e:
        raise ContractWriteError(f"Failed to write contract to {path}: {e}") from e
