"""
tests/test_exporter.py
----------------------
Unit tests for pipeline/exporter.py using a mock SourceDatabase.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from entities.datatypes import ConfigurationError, DataTypeSpec
from pipeline.exporter import DatabaseExporter, ExportedRow


class LegacyForumExporter(DatabaseExporter):
    """Two-table exporter in the shape of a real adapter."""

    methods = {"user": "users", "user.avatar": "avatars", "board": "boards"}
    limits = {"user.avatar": 50}
    file_data_types = frozenset({"user.avatar"})
    file_system_marker = "global.php"

    def data_types(self) -> list[DataTypeSpec]:
        return [
            DataTypeSpec("user", chunk_size=200),
            DataTypeSpec("user.avatar", prerequisites=("user",)),
            DataTypeSpec("board"),
            DataTypeSpec("smiley"),
        ]

    def count_users(self) -> int:
        return self._max_id("users", "userid")

    def export_users(self, offset: int, limit: int):
        low, high = self._id_range(offset, limit)
        for user in self.database.fetch_dicts(
            f"SELECT * FROM {self.table('users')} WHERE userid BETWEEN %s AND %s ORDER BY userid",
            (low, high),
        ):
            yield ExportedRow(user["userid"], {"username": user["username"]})

    def count_boards(self) -> int:
        return self._count("boards")


@pytest.fixture
def mock_db() -> MagicMock:
    db = MagicMock()
    db.table.side_effect = lambda name: f"`wbb1_1_{name}`"
    db.max_id.return_value = 1500
    db.count_rows.return_value = 12
    db.fetch_dicts.return_value = [
        {"userid": 1, "username": "alice"},
        {"userid": 3, "username": "bob"},
    ]
    return db


@pytest.fixture
def exporter(mock_db: MagicMock) -> LegacyForumExporter:
    return LegacyForumExporter(mock_db)


class TestDispatch:
    def test_count_uses_method_table(self, exporter, mock_db) -> None:
        assert exporter.count("user") == 1500
        mock_db.max_id.assert_called_once_with("`wbb1_1_users`", "userid")

    def test_count_rows(self, exporter, mock_db) -> None:
        assert exporter.count("board") == 12
        mock_db.count_rows.assert_called_once_with("`wbb1_1_boards`")

    def test_export_uses_id_range(self, exporter, mock_db) -> None:
        rows = list(exporter.export("user", 1000, 500))

        assert [r.source_key for r in rows] == [1, 3]
        assert rows[0].record == {"username": "alice"}
        sql, params = mock_db.fetch_dicts.call_args.args
        assert "BETWEEN %s AND %s" in sql
        assert params == (1001, 1500)

    def test_type_without_method_entry(self, exporter) -> None:
        with pytest.raises(ConfigurationError, match="no export method"):
            exporter.count("smiley")

    def test_method_entry_without_implementation(self, exporter) -> None:
        with pytest.raises(ConfigurationError, match="export_boards"):
            exporter.export("board", 0, 10)


class TestChunkSize:
    def test_declared_chunk_size_wins(self, exporter) -> None:
        assert exporter.chunk_size("user", 1000) == 200

    def test_limits_table(self, exporter) -> None:
        assert exporter.chunk_size("user.avatar", 1000) == 50

    def test_default(self, exporter) -> None:
        assert exporter.chunk_size("board", 1000) == 1000

    def test_id_range_bounds(self) -> None:
        assert DatabaseExporter._id_range(0, 100) == (1, 100)
        assert DatabaseExporter._id_range(200, 100) == (201, 300)


class TestPreflight:
    def test_source_access_connects_when_needed(self, mock_db) -> None:
        mock_db.is_connected = False
        exporter = LegacyForumExporter(mock_db)

        assert exporter.validate_source_access()
        mock_db.connect.assert_called_once()
        mock_db.fetch_value.assert_called_once_with("SELECT 1")

    def test_source_access_error_propagates(self, mock_db) -> None:
        mock_db.fetch_value.side_effect = RuntimeError("access denied")
        with pytest.raises(RuntimeError):
            LegacyForumExporter(mock_db).validate_source_access()

    def test_file_access_not_needed(self, mock_db) -> None:
        exporter = LegacyForumExporter(mock_db)
        assert exporter.validate_file_access(["user", "board"])

    def test_file_access_requires_directory(self, mock_db, tmp_path: Path) -> None:
        exporter = LegacyForumExporter(mock_db, file_system_path=tmp_path / "missing")
        assert not exporter.validate_file_access(["user", "user.avatar"])

    def test_file_access_without_path(self, mock_db) -> None:
        assert not LegacyForumExporter(mock_db).validate_file_access(["user.avatar"])

    def test_file_access_requires_marker(self, mock_db, tmp_path: Path) -> None:
        exporter = LegacyForumExporter(mock_db, file_system_path=tmp_path)
        assert not exporter.validate_file_access(["user.avatar"])

        (tmp_path / "global.php").write_text("<?php", encoding="utf-8")
        assert exporter.validate_file_access(["user.avatar"])

    def test_registry_built_once(self, exporter) -> None:
        assert exporter.registry is exporter.registry
        assert exporter.registry.names() == ["user", "user.avatar", "board", "smiley"]
