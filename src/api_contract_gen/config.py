"""Project configuration.

Settings are read from a YAML file (``api-contract.yaml`` in the working
directory by default) and scalar keys can be overridden with
``API_CONTRACT_<KEY>`` environment variables.
"""

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ValidationError

from api_contract_gen.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "api-contract.yaml"
ENV_PREFIX = "API_CONTRACT_"


class CacheSettings(BaseModel):
    """Where analysis results are memoized between runs."""

    backend: str = "file"  # file / memory
    path: str = ".api-contract/cache.json"
    ttl: int = 3600
    ast_ttl: int = 7200


class Settings(BaseModel):
    contract_path: str = "api-contracts/api.json"
    routes: str | None = None  # "package.module:attribute"
    route_prefix: str = "api/"
    resources_path: str = "app/resources"
    resources_namespace: str = "app.resources"
    models_namespace: str = "app.models"
    resource_subnamespaces: list[str] = []
    serializer_suffixes: list[str] = ["Resource", "Collection"]
    fixture_method: str = "fixture"
    response_helpers: list[str] = ["ApiResponse.data", "Response.json", "api_response"]
    request_types: list[str] = ["Request"]
    json_response_types: list[str] = ["JSONResponse", "JsonResponse", "dict", "Response"]
    rate_limiters: dict[str, str | dict] = {}
    passport: bool = True
    watch_paths: list[str] = []
    transformers: list[str] = []
    log_path: str = "api-contracts/generation.log"
    cache: CacheSettings = CacheSettings()

    @property
    def versions_path(self) -> Path:
        return Path(self.contract_path).parent / "versions"


def load_settings(config_path: Path | None = None) -> Settings:
    """Load settings from YAML, then apply environment overrides."""
    data: dict = {}
    path = config_path or Path(DEFAULT_CONFIG_FILE)

    if path.exists():
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        data = loaded or {}
        logger.debug("Loaded configuration from %s", path)
    elif config_path is not None:
        raise ConfigError(f"Config file not found: {path}")

    data.update(_env_overrides())

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _env_overrides() -> dict:
    overrides = {}
    for name, field in Settings.model_fields.items():
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is None:
            continue
        if field.annotation is bool:
            overrides[name] = value.lower() in ("1", "true", "yes", "on")
        elif field.annotation in (str, str | None):
            overrides[name] = value
    return overrides
