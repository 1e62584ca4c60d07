"""CLI entry point for api-contract-gen."""

import json
import logging
import os
import sys
from pathlib import Path

import click

from api_contract_gen.cache.analysis import AnalysisCache
from api_contract_gen.cache.store import CacheStore, FileStore, MemoryStore
from api_contract_gen.config import Settings, load_settings
from api_contract_gen.errors import ConfigError, ContractLoadError, ContractWriteError
from api_contract_gen.generator.contract import ContractGenerator, GenerationOptions, GenerationResult
from api_contract_gen.generator.versions import ContractVersions, format_bytes
from api_contract_gen.routing.registry import load_routes
from api_contract_gen.tools.compare import compare_contracts
from api_contract_gen.tools.describe import describe_route, describe_routes
from api_contract_gen.tools.list_routes import MAX_LIMIT, list_routes
from api_contract_gen.tools.loader import CONTRACT_METHODS, ContractLoader
from api_contract_gen.tools.validate import validate_contract

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_store(settings: Settings) -> CacheStore:
    if settings.cache.backend == "memory":
        return MemoryStore()
    if settings.cache.backend == "file":
        return FileStore(Path(settings.cache.path))
    raise ConfigError(f"Unknown cache backend '{settings.cache.backend}'. Use 'file' or 'memory'.")


def _settings(ctx: click.Context) -> Settings:
    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


def _load_contract(path: str | Path) -> dict:
    try:
        return ContractLoader(path).load()
    except ContractLoadError as e:
        raise click.ClickException(str(e)) from e


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=4, ensure_ascii=False))


def _attach_log_file(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger = logging.getLogger("api_contract_gen")
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.INFO)


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Path to api-contract.yaml (default: ./api-contract.yaml).")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None):
    """API Contract Gen: synthesize and query an API contract from application routes."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    # the host application is imported from the working directory
    if os.getcwd() not in sys.path:
        sys.path.insert(0, os.getcwd())


@main.command()
@click.option("--incremental", is_flag=True, help="Reuse entries whose sources did not change.")
@click.option("--log", "log_to_file", is_flag=True, help="Also write a log file at log_path.")
@click.option("--dry-run", is_flag=True, help="Analyze without writing the contract.")
@click.option("--validate-schemas", is_flag=True, help="Check generated schemas for invalid types.")
@click.option("--strict", is_flag=True, help="Exit non-zero on any warning.")
@click.option("--detailed", is_flag=True, help="Show per-route progress and suggestions.")
@click.pass_context
def generate(ctx: click.Context, incremental: bool, log_to_file: bool, dry_run: bool,
             validate_schemas: bool, strict: bool, detailed: bool):
    """Generate the API contract from the configured route table."""
    settings = _settings(ctx)
    if log_to_file:
        _attach_log_file(Path(settings.log_path))

    options = GenerationOptions(
        incremental=incremental,
        dry_run=dry_run,
        validate_schemas=validate_schemas,
        strict=strict,
        detailed=detailed,
    )

    click.echo("Generating API contract...")
    try:
        generator = ContractGenerator(settings, store=build_store(settings))
        result = generator.generate(options)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    except ContractWriteError as e:
        logger.error("%s", e)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _report(result)
    sys.exit(result.exit_code)


def _report(result: GenerationResult) -> None:
    ctx = result.context
    options = ctx.options

    if result.archived:
        click.echo(f"Previous contract archived as {result.archived.name}")
    if options.incremental:
        click.echo(f"Reused {ctx.reused} unchanged entries.")

    if ctx.schema_errors:
        click.echo(f"Schema validation found {len(ctx.schema_errors)} error(s):", err=True)
        for error in ctx.schema_errors:
            click.echo(f"  {error['method']} {error['route']} {error['path']}: {error['message']}", err=True)
    elif options.validate_schemas:
        click.echo("Schema validation passed.")

    if options.dry_run:
        click.echo(
            f"Dry run: {result.route_count} routes analyzed, {len(ctx.warnings)} warning(s). Contract not written."
        )
    else:
        click.echo(f"Contract generated at: {result.path}")

    click.echo("")
    if not ctx.warnings:
        click.echo("Contract generation completed successfully with no warnings or errors.")
        return
    if ctx.error_count:
        click.echo(f"Errors: {ctx.error_count}", err=True)
    click.echo(f"Warnings: {len(ctx.warnings)}", err=True)
    if options.strict:
        click.echo("Strict mode enabled: Contract generation completed with errors/warnings.", err=True)
    else:
        click.echo("Contract generation completed with warnings. Use --strict to fail on errors.")


@main.command("clear-cache")
@click.option("--type", "type_", default=None, help="Only clear one analysis type (route, resource, validator, ...).")
@click.pass_context
def clear_cache(ctx: click.Context, type_: str | None):
    """Clear the analysis cache."""
    settings = _settings(ctx)
    try:
        store = build_store(settings)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    cache = AnalysisCache(store, settings.cache.ttl)
    removed = cache.clear_type(type_) if type_ else cache.clear()
    store.save()
    if type_:
        click.echo(f"Cache cleared for type: {type_} ({removed} entries)")
    else:
        click.echo("All analysis cache cleared successfully.")


@main.group()
def versions():
    """Manage archived contract versions."""


@versions.command("list")
@click.pass_context
def versions_list(ctx: click.Context):
    """List archived contract versions, newest first."""
    settings = _settings(ctx)
    found = ContractVersions(Path(settings.contract_path), settings.versions_path).list()
    if not found:
        click.echo("No versions found.")
        return
    click.echo(f"{'Version':<32} {'Date':<20} Size")
    for version in found:
        click.echo(f"{version['filename']:<32} {version['date']:<20} {format_bytes(version['size'])}")


@versions.command("restore")
@click.option("--version", "version", required=True, help="Version file name to restore.")
@click.pass_context
def versions_restore(ctx: click.Context, version: str):
    """Restore an archived contract version (the current one is archived first)."""
    settings = _settings(ctx)
    history = ContractVersions(Path(settings.contract_path), settings.versions_path)
    try:
        backup = history.restore(version)
    except (FileNotFoundError, ContractWriteError) as e:
        raise click.ClickException(str(e)) from e
    if backup:
        click.echo(f"Current contract backed up as: {backup.name}")
    click.echo(f"Contract restored from version: {version}")


@main.command("list-routes")
@click.option("--method", default=None, type=click.Choice(CONTRACT_METHODS, case_sensitive=False), help="Filter by HTTP method.")
@click.option("--version", "api_version", default=None, help="Filter by API version (v1, v2, ...).")
@click.option("--search", default=None, help="Search path, parameters, auth, rate limit and schema fields.")
@click.option("--page", type=int, default=None, help="Page number (1-based).")
@click.option("--offset", type=int, default=None, help="Offset into the result list.")
@click.option("--limit", type=int, default=50, show_default=True, help=f"Page size (max {MAX_LIMIT}).")
@click.option("--include-metadata", is_flag=True, help="Include descriptions and contract metadata.")
@click.pass_context
def list_routes_command(ctx: click.Context, method: str | None, api_version: str | None, search: str | None,
                        page: int | None, offset: int | None, limit: int, include_metadata: bool):
    """List documented routes."""
    if page is not None and offset is not None:
        raise click.UsageError("Use either --page or --offset, not both.")
    settings = _settings(ctx)
    contract = _load_contract(settings.contract_path)
    _echo_json(list_routes(
        contract,
        method=method,
        version=api_version,
        search=search,
        page=page,
        offset=offset,
        limit=limit,
        include_metadata=include_metadata,
    ))


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--method", "methods", multiple=True, type=click.Choice(CONTRACT_METHODS, case_sensitive=False),
              help="HTTP method (default GET). Repeat for several.")
@click.pass_context
def describe(ctx: click.Context, paths: tuple[str, ...], methods: tuple[str, ...]):
    """Describe a route. Several PATHS (or methods) give a batch result."""
    settings = _settings(ctx)
    contract = _load_contract(settings.contract_path)
    methods = methods or ("GET",)
    if len(paths) == 1 and len(methods) == 1:
        _echo_json(describe_route(contract, paths[0], methods[0]))
    else:
        _echo_json(describe_routes(contract, list(paths), list(methods)))


@main.command()
@click.pass_context
def validate(ctx: click.Context):
    """Check the contract against the current route table."""
    settings = _settings(ctx)
    contract = _load_contract(settings.contract_path)
    try:
        routes = load_routes(settings.routes)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    result = validate_contract(contract, routes, settings.route_prefix)
    _echo_json(result)
    if not result["valid"]:
        sys.exit(1)


@main.command()
@click.argument("contract_a", type=click.Path(path_type=Path))
@click.argument("contract_b", type=click.Path(path_type=Path))
def compare(contract_a: Path, contract_b: Path):
    """Compare two contract files (CONTRACT_A is the older one)."""
    _echo_json(compare_contracts(_load_contract(contract_a), _load_contract(contract_b)))


if __name__ == "__main__":
    main()
