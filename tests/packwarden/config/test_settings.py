# tests/packwarden/config/test_settings.py
from __future__ import annotations

import logging
from pathlib import Path

import json5
import pytest

from packwarden import __version__
from packwarden.config.settings import DEFAULTS, loadSettings, userConfigPath


def _write(path: Path, data: dict) -> Path:
    path.write_text(json5.dumps(data, indent=2, quote_keys=True), encoding="utf-8")
    return path


def test_defaults_whenNothingElseIsPresent(tmp_path: Path) -> None:
    settings = loadSettings(tmp_path)

    assert settings.get("catalog.baseUrl") == "https://api.modrinth.com/v2"
    assert settings.get("catalog.userAgent") == f"packwarden/{__version__}"
    assert settings.get("catalog.token") is None
    assert settings.getInt("install.checkpointEvery") == 10
    assert settings.getInt("install.rateLimit.maxAttempts") == 3
    assert settings.getInt("install.rateLimit.waitSeconds") == 60
    assert settings.get("pack.file") == "pack.json5"
    assert settings.getBool("logging.suppressRecurring") is False


def test_precedence_userThenPackThenCli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    userFile = _write(tmp_path / "user.json5", {
        "catalog": {"baseUrl": "https://user.example", "timeoutMs": 1000},
        "install": {"checkpointEvery": 7},
    })
    monkeypatch.setenv("PACKWARDEN_CONFIG", str(userFile))
    packDir = tmp_path / "pack"
    packDir.mkdir()
    _write(packDir / "pack.json5", {"name": "P", "options": {"install": {"checkpointEvery": 4}}})

    settings = loadSettings(packDir, {"catalog.baseUrl": "https://cli.example", "pack.metaFolder": None})

    assert settings.get("catalog.baseUrl") == "https://cli.example"
    assert settings.getInt("catalog.timeoutMs") == 1000
    assert settings.getInt("install.checkpointEvery") == 4
    # None overrides mean "flag not given"
    assert settings.get("pack.metaFolder") == ""


def test_brokenUserFile_isIgnoredWithWarning(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog) -> None:
    broken = tmp_path / "broken.json5"
    broken.write_text("{ not json5", encoding="utf-8")
    monkeypatch.setenv("PACKWARDEN_CONFIG", str(broken))

    with caplog.at_level(logging.WARNING):
        settings = loadSettings(tmp_path)

    assert settings.get("catalog.baseUrl") == DEFAULTS["catalog"]["baseUrl"]
    assert any("Ignoring user config" in rec.getMessage() for rec in caplog.records)


def test_userConfigPath_honoursEnvironment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PACKWARDEN_CONFIG", str(tmp_path / "x.json5"))
    assert userConfigPath() == tmp_path / "x.json5"

    monkeypatch.delenv("PACKWARDEN_CONFIG")
    assert userConfigPath().name == "config.json5"
    assert userConfigPath().parent.name == "packwarden"


@pytest.mark.parametrize(
    ("value", "expected"),
    [(True, True), ("yes", True), ("0", False), (1, True), (0, False), ("off", False)],
)
def test_getBool_coercion(tmp_path: Path, value, expected: bool) -> None:
    settings = loadSettings(tmp_path, {"logging.suppressRecurring": value})
    assert settings.getBool("logging.suppressRecurring") is expected


def test_getInt_fallsBackOnGarbage(tmp_path: Path) -> None:
    settings = loadSettings(tmp_path, {"install.checkpointEvery": "many"})
    assert settings.getInt("install.checkpointEvery", 10) == 10


def test_withPackOptions_replacesPackLayer(tmp_path: Path) -> None:
    settings = loadSettings(tmp_path, {"catalog.timeoutMs": 5})
    layered = settings.withPackOptions({"catalog": {"timeoutMs": 9, "hashAlgorithm": "sha1"}})

    # cli still wins over pack options
    assert layered.getInt("catalog.timeoutMs") == 5
    assert layered.get("catalog.hashAlgorithm") == "sha1"
    assert settings.get("catalog.hashAlgorithm") == "sha512"
