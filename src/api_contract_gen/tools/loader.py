"""Read a persisted contract for the query tools."""

import json
import logging
from pathlib import Path
from typing import Iterator

from api_contract_gen.errors import ContractLoadError

logger = logging.getLogger(__name__)

METADATA_KEY = "_metadata"
CONTRACT_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


def iter_entries(contract: dict) -> Iterator[tuple[str, str, dict]]:
    """(path, method, entry) for every route in the contract, skipping _metadata."""
    for path, methods in contract.items():
        if path == METADATA_KEY or not isinstance(methods, dict):
            continue
        for method, entry in methods.items():
            yield path, method, entry


def route_table(contract: dict) -> dict[str, dict]:
    return {path: methods for path, methods in contract.items() if path != METADATA_KEY}


def validate_structure(contract) -> bool:
    """Paths map to methods; every entry has an auth object with a string type."""
    if not isinstance(contract, dict):
        return False
    for path, methods in contract.items():
        if path == METADATA_KEY:
            continue
        if not isinstance(methods, dict):
            return False
        for method, entry in methods.items():
            if method not in CONTRACT_METHODS:
                continue
            if not isinstance(entry, dict):
                return False
            auth = entry.get("auth")
            if not isinstance(auth, dict) or not isinstance(auth.get("type"), str):
                return False
            if "path_parameters" in entry and not isinstance(entry["path_parameters"], (dict, list)):
                return False
    return True


class ContractLoader:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._contract: dict | None = None

    def load(self) -> dict:
        if self._contract is not None:
            return self._contract

        if not self.path.exists():
            raise ContractLoadError(f"Contract not found at {self.path}. Run 'api-contract generate'.")
        try:
            contract = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ContractLoadError(f"Could not read contract {self.path}: {e}") from e

        if not validate_structure(contract):
            raise ContractLoadError(
                f"Contract {self.path} has an invalid structure. Regenerate it with 'api-contract generate'."
            )
        logger.debug("Loaded contract from %s", self.path)
        self._contract = contract
        return contract

    def clear(self) -> None:
        self._contract = None
