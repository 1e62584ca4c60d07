import json
import os
from datetime import datetime

import pytest

from api_contract_gen.errors import ContractWriteError
from api_contract_gen.generator.versions import ContractVersions, format_bytes, format_timestamp


def _history(tmp_path, stamp=datetime(2024, 1, 15, 14, 30, 22)) -> ContractVersions:
    return ContractVersions(tmp_path / "api.json", tmp_path / "versions", clock=lambda: stamp)


class TestArchive:
    def test_nothing_to_archive(self, tmp_path):
        assert _history(tmp_path).archive() is None
        assert not (tmp_path / "versions").exists()

    def test_archive_copies_contract(self, tmp_path):
        (tmp_path / "api.json").write_text('{"a": 1}')
        archived = _history(tmp_path).archive()
        assert archived.name == "api-2024-01-15-143022.json"
        assert archived.read_text() == '{"a": 1}'

    def test_same_second_gets_suffix(self, tmp_path):
        (tmp_path / "api.json").write_text("{}")
        history = _history(tmp_path)
        first, second = history.archive(), history.archive()
        assert first.name == "api-2024-01-15-143022.json"
        assert second.name == "api-2024-01-15-143022-1.json"

    def test_unwritable_versions_directory(self, tmp_path):
        (tmp_path / "api.json").write_text("{}")
        (tmp_path / "versions").write_text("not a directory")
        with pytest.raises(ContractWriteError, match="Failed to archive"):
            _history(tmp_path).archive()


class TestList:
    def test_empty(self, tmp_path):
        assert _history(tmp_path).list() == []

    def test_newest_first_and_foreign_files_ignored(self, tmp_path):
        versions = tmp_path / "versions"
        versions.mkdir()
        old = versions / "api-2024-01-01-000000.json"
        new = versions / "api-2024-02-01-120000.json"
        old.write_text("{}")
        new.write_text('{"b": 2}')
        (versions / "notes.txt").write_text("x")
        os.utime(old, (1_700_000_000, 1_700_000_000))
        os.utime(new, (1_700_100_000, 1_700_100_000))

        listed = _history(tmp_path).list()
        assert [v["filename"] for v in listed] == [new.name, old.name]
        assert listed[0]["date"] == "2024-02-01 12:00:00"
        assert listed[0]["timestamp"] == "2024-02-01-120000"
        assert listed[0]["size"] == len('{"b": 2}')


class TestRestore:
    def test_restore_archives_current_first(self, tmp_path):
        (tmp_path / "api.json").write_text(json.dumps({"current": True}))
        versions = tmp_path / "versions"
        versions.mkdir()
        (versions / "api-2023-12-31-235959.json").write_text(json.dumps({"old": True}))

        backup = _history(tmp_path).restore("api-2023-12-31-235959.json")

        assert json.loads((tmp_path / "api.json").read_text()) == {"old": True}
        assert json.loads(backup.read_text()) == {"current": True}

    def test_restore_without_current_contract(self, tmp_path):
        versions = tmp_path / "versions"
        versions.mkdir()
        (versions / "api-2023-12-31-235959.json").write_text("{}")
        assert _history(tmp_path).restore("api-2023-12-31-235959.json") is None
        assert (tmp_path / "api.json").read_text() == "{}"

    def test_missing_version(self, tmp_path):
        (tmp_path / "api.json").write_text("{}")
        with pytest.raises(FileNotFoundError):
            _history(tmp_path).restore("api-1999-01-01-000000.json")
        assert not (tmp_path / "versions").exists()

    def test_version_name_cannot_escape_directory(self, tmp_path):
        (tmp_path / "secret.json").write_text("{}")
        (tmp_path / "versions").mkdir()
        with pytest.raises(FileNotFoundError):
            _history(tmp_path).restore("../secret.json")


class TestFormatting:
    def test_format_timestamp(self):
        assert format_timestamp("2024-01-15-143022") == "2024-01-15 14:30:22"

    def test_format_bytes(self):
        assert format_bytes(512) == "512 B"
        assert format_bytes(1536) == "1.5 KB"
        assert format_bytes(5 * 1024 * 1024) == "5 MB"
