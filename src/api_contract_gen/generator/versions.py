"""Contract history: archived copies named api-YYYY-MM-DD-HHMMSS.json."""

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path

from api_contract_gen.errors import ContractWriteError

logger = logging.getLogger(__name__)

VERSION_FILE = re.compile(r"^api-(\d{4}-\d{2}-\d{2}-\d{6})(?:-\d+)?\.json$")


class ContractVersions:
    def __init__(self, contract_path: Path, versions_path: Path, clock=datetime.now):
        self.contract_path = Path(contract_path)
        self.versions_path = Path(versions_path)
        self._clock = clock

    def archive(self) -> Path | None:
        """Copy the current contract into the versions directory, if there is one."""
        if not self.contract_path.exists():
            return None
        try:
            self.versions_path.mkdir(parents=True, exist_ok=True)
            target = self._next_name()
            shutil.copy2(self.contract_path, target)
        except OSError as e:
            raise ContractWriteError(f"Failed to archive contract to {self.versions_path}: {e}") from e
        logger.info("Archived %s as %s", self.contract_path, target.name)
        return target

    def _next_name(self) -> Path:
        stamp = self._clock().strftime("%Y-%m-%d-%H%M%S")
        target = self.versions_path / f"api-{stamp}.json"
        n = 1
        while target.exists():
            target = self.versions_path / f"api-{stamp}-{n}.json"
            n += 1
        return target

    def list(self) -> list[dict]:
        """Archived versions, newest first."""
        if not self.versions_path.is_dir():
            return []

        versions = []
        for path in self.versions_path.iterdir():
            match = VERSION_FILE.match(path.name)
            if not match:
                continue
            stat = path.stat()
            versions.append({
                "filename": path.name,
                "timestamp": match.group(1),
                "date": format_timestamp(match.group(1)),
                "size": stat.st_size,
                "modified": stat.st_mtime,
            })
        versions.sort(key=lambda v: (v["modified"], v["filename"]), reverse=True)
        return versions

    def restore(self, version: str) -> Path | None:
        """Replace the current contract with an archived one.

        The current contract is archived first. Returns the backup path, or
        None when there was no current contract. Raises FileNotFoundError
        when the version does not exist and ContractWriteError when the
        backup or the copy fails.
        """
        source = self.versions_path / Path(version).name
        if not source.is_file():
            raise FileNotFoundError(f"Version file not found: {version}")

        backup = self.archive()
        try:
            self.contract_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, self.contract_path)
        except OSError as e:
            raise ContractWriteError(f"Failed to restore {source.name} to {self.contract_path}: {e}") from e
        logger.info("Restored contract from %s", source.name)
        return backup


def format_timestamp(stamp: str) -> str:
    """'2024-01-15-143022' -> '2024-01-15 14:30:22'."""
    date, _, time = stamp.rpartition("-")
    if len(time) != 6:
        return stamp
    return f"{date} {time[:2]}:{time[2:4]}:{time[4:]}"


def format_bytes(size: int) -> str:
    value = float(max(size, 0))
    for unit in ("B", "KB", "MB"):
        if value < 1024:
            return f"{round(value, 2):g} {unit}"
        value /= 1024
    return f"{round(value, 2):g} GB"
