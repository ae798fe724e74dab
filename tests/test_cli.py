"""CLI commands against a throwaway SQLite database."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from shelfmark.cli import main
from shelfmark.server.settings import _get_settings_cached, get_settings

DOCUMENT = {
    "spaces": [{"name": "Work", "icon": "briefcase"}],
    "collections": [{"name": "Docs", "spaceName": "Work", "viewMode": "list"}],
    "bookmarks": [
        {"title": "SQLAlchemy", "url": "https://www.sqlalchemy.org", "collectionName": "Docs"},
        {"title": "Dangling", "url": "https://dangling.test", "collectionName": "Missing"},
    ],
}


@pytest.fixture
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    db_file = tmp_path / "shelfmark.db"
    monkeypatch.setenv("SHELFMARK_DATABASE_URL", f"sqlite+aiosqlite:///{db_file}")
    _get_settings_cached.cache_clear()
    yield db_file
    _get_settings_cached.cache_clear()


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHELFMARK_PREVIEW_TIMEOUT", "2.5")
    monkeypatch.setenv("SHELFMARK_DEFAULT_WORKSPACE_ID", "home")
    _get_settings_cached.cache_clear()
    try:
        settings = get_settings()
        assert settings.preview_timeout == 2.5
        assert settings.default_workspace_id == "home"
        assert get_settings() is settings
    finally:
        _get_settings_cached.cache_clear()


def test_commands_need_a_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SHELFMARK_DATABASE_URL", "")
    _get_settings_cached.cache_clear()
    try:
        result = CliRunner().invoke(main, ["db", "seed"])
    finally:
        _get_settings_cached.cache_clear()
    assert result.exit_code != 0
    assert "SHELFMARK_DATABASE_URL is not set" in result.output


def test_migrate_seed_import_export(database: Path, tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(main, ["db", "upgrade"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(main, ["db", "seed"])
    assert result.exit_code == 0, result.output
    assert "default-workspace created" in result.output

    result = runner.invoke(main, ["db", "seed"])
    assert "already exists" in result.output

    source = tmp_path / "in.json"
    source.write_text(json.dumps(DOCUMENT), encoding="utf-8")
    result = runner.invoke(main, ["import", "default-workspace", str(source)])
    assert result.exit_code == 0, result.output
    assert "1 spaces, 1 collections, 1 bookmarks" in result.output

    target = tmp_path / "out.json"
    result = runner.invoke(main, ["export", "default-workspace", "-o", str(target)])
    assert result.exit_code == 0, result.output
    exported = json.loads(target.read_text(encoding="utf-8"))
    assert [c["viewMode"] for c in exported["collections"]] == ["list"]
    assert [b["title"] for b in exported["bookmarks"]] == ["SQLAlchemy"]
    assert exported["spaces"][0]["icon"] == "briefcase"


def test_import_rejects_bad_files(database: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    assert runner.invoke(main, ["db", "upgrade"]).exit_code == 0
    runner.invoke(main, ["db", "seed", "--workspace-id", "w1"])

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    result = runner.invoke(main, ["import", "w1", str(broken)])
    assert result.exit_code != 0
    assert "not valid JSON" in result.output

    wrong_shape = tmp_path / "shape.json"
    wrong_shape.write_text(json.dumps({"spaces": []}), encoding="utf-8")
    result = runner.invoke(main, ["import", "w1", str(wrong_shape)])
    assert result.exit_code != 0
    assert "Invalid import file format" in result.output

    result = runner.invoke(main, ["export", "nobody"])
    assert result.exit_code != 0
    assert "not found" in result.output
