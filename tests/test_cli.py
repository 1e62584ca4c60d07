import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from api_contract_gen.cache.store import FileStore, MemoryStore
from api_contract_gen.cli import build_store, main
from api_contract_gen.config import Settings
from api_contract_gen.errors import ConfigError, ContractWriteError

SAMPLEAPP = Path(__file__).parent / "fixtures" / "sampleapp"


def _config(tmp_path, **overrides) -> Path:
    values = {
        "contract_path": str(tmp_path / "api-contracts" / "api.json"),
        "routes": "sampleapp.routes:clean_routes",
        "resources_path": str(SAMPLEAPP / "resources"),
        "resources_namespace": "sampleapp.resources",
        "models_namespace": "sampleapp.models",
        "resource_subnamespaces": ["posts", "users"],
        "cache": {"backend": "file", "path": str(tmp_path / "cache" / "analysis.json")},
        "log_path": str(tmp_path / "logs" / "generation.log"),
    }
    values.update(overrides)
    path = tmp_path / "api-contract.yaml"
    path.write_text(yaml.safe_dump(values))
    return path


def _run(config: Path, *args):
    return CliRunner().invoke(main, ["--config", str(config), *args])


@pytest.fixture
def package_logger():
    logger = logging.getLogger("api_contract_gen")
    handlers = list(logger.handlers)
    level = logger.level
    yield logger
    for handler in logger.handlers[len(handlers):]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level)


class TestCliGenerate:
    def test_generate(self, tmp_path):
        result = _run(_config(tmp_path), "generate")

        assert result.exit_code == 0, result.output
        assert "Contract generated at:" in result.output
        assert "completed successfully" in result.output
        contract = json.loads((tmp_path / "api-contracts" / "api.json").read_text(encoding="utf-8"))
        assert "/api/v1/posts" in contract
        assert (tmp_path / "cache" / "analysis.json").exists()

    def test_warnings_do_not_fail_by_default(self, tmp_path):
        result = _run(_config(tmp_path, routes="sampleapp.routes:ROUTES"), "generate")
        assert result.exit_code == 0
        assert "Warnings: 4" in result.output
        assert "Use --strict" in result.output

    def test_strict_fails_on_warnings(self, tmp_path):
        result = _run(_config(tmp_path, routes="sampleapp.routes:ROUTES"), "generate", "--strict")
        assert result.exit_code == 1
        assert "Errors: 4" in result.output

    def test_detailed_shows_suggestions(self, tmp_path):
        result = _run(_config(tmp_path, routes="sampleapp.routes:ROUTES"), "generate", "--detailed")
        assert "Processing GET /api/v1/archive ... " in result.output
        assert "Suggestion: Verify the route definition." in result.output

    def test_dry_run(self, tmp_path):
        result = _run(_config(tmp_path), "generate", "--dry-run", "--validate-schemas")
        assert result.exit_code == 0
        assert "Dry run: 8 routes analyzed" in result.output
        assert "Schema validation passed." in result.output
        assert not (tmp_path / "api-contracts" / "api.json").exists()

    def test_incremental(self, tmp_path):
        config = _config(tmp_path)
        _run(config, "generate")
        result = _run(config, "generate", "--incremental")
        assert result.exit_code == 0
        assert "Reused 8 unchanged entries." in result.output

    def test_second_run_archives(self, tmp_path):
        config = _config(tmp_path)
        _run(config, "generate")
        result = _run(config, "generate")
        assert "Previous contract archived as api-" in result.output

    def test_log_file(self, tmp_path, package_logger):
        result = _run(_config(tmp_path, routes="sampleapp.routes:ROUTES"), "generate", "--log")
        assert result.exit_code == 0
        log = (tmp_path / "logs" / "generation.log").read_text(encoding="utf-8")
        assert "ROUTE_CONTROLLER_NOT_FOUND" in log
        assert "Analyzed 12 routes" in log

    def test_write_error_exits_nonzero(self, tmp_path):
        with patch("api_contract_gen.cli.ContractGenerator") as MockGen:
            MockGen.return_value.generate.side_effect = ContractWriteError("disk full")
            result = _run(_config(tmp_path), "generate")
        assert result.exit_code == 1
        assert "Error: disk full" in result.output

    def test_archive_failure_is_reported(self, tmp_path):
        config = _config(tmp_path)
        _run(config, "generate")
        (tmp_path / "api-contracts" / "versions").write_text("not a directory")

        result = _run(config, "generate")
        assert result.exit_code == 1
        assert "Error: Failed to archive contract" in result.output

    def test_missing_config_file(self, tmp_path):
        result = _run(tmp_path / "missing.yaml", "generate")
        assert result.exit_code == 1
        assert "Config file not found" in result.output

    def test_missing_route_table(self, tmp_path):
        result = _run(_config(tmp_path, routes="sampleapp.nowhere:ROUTES"), "generate")
        assert result.exit_code == 1
        assert "Could not import route module" in result.output


class TestCliCache:
    def test_clear_all(self, tmp_path):
        config = _config(tmp_path)
        _run(config, "generate")
        result = _run(config, "clear-cache")
        assert result.exit_code == 0
        assert "All analysis cache cleared successfully." in result.output

        store = FileStore(tmp_path / "cache" / "analysis.json")
        assert not [k for k in store.keys() if k.startswith("api_contract_analysis:")]

    def test_clear_type(self, tmp_path):
        config = _config(tmp_path)
        _run(config, "generate")
        result = _run(config, "clear-cache", "--type", "route")
        assert result.exit_code == 0
        assert "Cache cleared for type: route (8 entries)" in result.output

    def test_build_store(self, tmp_path):
        assert isinstance(build_store(Settings(cache={"backend": "memory"})), MemoryStore)
        assert isinstance(build_store(Settings(cache={"backend": "file", "path": str(tmp_path / "c.json")})), FileStore)
        with pytest.raises(ConfigError):
            build_store(Settings(cache={"backend": "redis"}))


class TestCliVersions:
    def test_list_empty(self, tmp_path):
        result = _run(_config(tmp_path), "versions", "list")
        assert result.exit_code == 0
        assert "No versions found." in result.output

    def test_list_and_restore(self, tmp_path):
        config = _config(tmp_path)
        _run(config, "generate")
        _run(config, "generate")

        listed = _run(config, "versions", "list")
        assert listed.exit_code == 0
        archived = sorted((tmp_path / "api-contracts" / "versions").glob("api-*.json"))
        assert len(archived) == 1
        assert archived[0].name in listed.output

        restored = _run(config, "versions", "restore", "--version", archived[0].name)
        assert restored.exit_code == 0
        assert f"Contract restored from version: {archived[0].name}" in restored.output
        assert "Current contract backed up as: api-" in restored.output

    def test_restore_missing_version(self, tmp_path):
        result = _run(_config(tmp_path), "versions", "restore", "--version", "api-2000-01-01-000000.json")
        assert result.exit_code == 1
        assert "Version file not found" in result.output


class TestCliQueries:
    @pytest.fixture
    def config(self, tmp_path):
        config = _config(tmp_path)
        assert _run(config, "generate").exit_code == 0
        return config

    def test_list_routes(self, config):
        result = _run(config, "list-routes", "--method", "post")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["total"] == 2
        assert [r["path"] for r in data["routes"]] == ["/api/v1/posts", "/api/webhooks/stripe"]

    def test_list_routes_metadata(self, config):
        data = json.loads(_run(config, "list-routes", "--version", "v2", "--include-metadata").output)
        assert data["total"] == 1
        assert data["metadata"]["generator"] == "api-contract-gen"

    def test_list_routes_page_and_offset_conflict(self, config):
        result = _run(config, "list-routes", "--page", "1", "--offset", "0")
        assert result.exit_code == 2

    def test_describe(self, config):
        data = json.loads(_run(config, "describe", "/api/v1/posts/5", "--method", "DELETE").output)
        assert data["matched_route"] == "/api/v1/posts/{post}"
        assert "204" in data["status_codes"]

    def test_describe_batch(self, config):
        data = json.loads(_run(config, "describe", "/api/health", "/api/nowhere").output)
        assert data["total_operations"] == 2
        assert data["batch_results"][1]["data"] == {"undocumented": True}

    def test_validate_in_sync(self, config):
        result = _run(config, "validate")
        assert result.exit_code == 0
        assert json.loads(result.output)["valid"] is True

    def test_validate_drift(self, config, tmp_path):
        drifted = _config(tmp_path, routes="sampleapp.routes:ROUTES")
        result = _run(drifted, "validate")
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["summary"]["new_routes"] == 4

    def test_compare(self, config, tmp_path):
        current = tmp_path / "api-contracts" / "api.json"
        contract = json.loads(current.read_text(encoding="utf-8"))
        del contract["/api/health"]
        older = tmp_path / "older.json"
        older.write_text(json.dumps(contract))

        data = json.loads(CliRunner().invoke(main, ["compare", str(older), str(current)]).output)
        assert data["summary"]["added_routes"] == 1
        assert data["changes"][0]["path"] == "/api/health"

    def test_missing_contract(self, tmp_path):
        result = _run(_config(tmp_path), "list-routes")
        assert result.exit_code == 1
        assert "Contract not found" in result.output
