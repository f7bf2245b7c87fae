# packwarden/config/settings.py
from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from packwarden import __version__
from packwarden.core.config_stack import ConfigLayer, ConfigStack, ConfigView
from packwarden.core.dictpath import setByPath
from packwarden.core.documents import readDocument
from packwarden.core.errors import PackIOError, ParseError

logger = logging.getLogger(__name__)

__all__ = ["DEFAULTS", "Settings", "loadSettings", "userConfigPath"]

CONFIG_ENV_VAR = "PACKWARDEN_CONFIG"



DEFAULTS: dict[str, Any] = {
    "catalog": {
        "baseUrl": "https://api.modrinth.com/v2",
        "userAgent": f"packwarden/{__version__}",
        "token": None,
        "timeoutMs": 30000,
        "hashAlgorithm": "sha512",
    },
    "install": {
        "checkpointEvery": 10,
        "rateLimit": {
            "maxAttempts": 3,
            "waitSeconds": 60,
        },
    },
    "pack": {
        "file": "pack.json5",
        "metaFolderBase": ".",
        "metaFolder": "",
    },
    "logging": {
        "level": "INFO",
        "jsonFile": None,
        "suppressRecurring": False,
    },
}



def userConfigPath() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "packwarden" / "config.json5"



def _loadOptionalFile(path: Path) -> dict[str, Any]:
    """A missing user file is an empty layer; a broken one is logged and ignored."""
    if not path.exists():
        return {}
    try:
        return readDocument(path)
    except (PackIOError, ParseError) as err:
        logger.warning("Ignoring user config '%s': %s", path, err)
        return {}



def _expandDotted(overrides: Mapping[str, Any]) -> dict[str, Any]:
    """CLI overrides arrive as {"catalog.baseUrl": "..."}; None values mean "flag not given"."""
    out: dict[str, Any] = {}
    for key, value in overrides.items():
        if value is None:
            continue
        setByPath(out, key, value)
    return out



class Settings:
    """Read access to the merged configuration for one run."""
    def __init__(self, stack: ConfigStack):
        self._stack = stack
        self._view: ConfigView = stack.view()

    @property
    def stack(self) -> ConfigStack:
        return self._stack

    def get(self, path: str, default: Any = None) -> Any:
        return self._view.get(path, default)

    def getInt(self, path: str, default: int = 0) -> int:
        value = self.get(path, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning("Setting '%s' is not an integer (%r); using %d", path, value, default)
            return default

    def getBool(self, path: str, default: bool = False) -> bool:
        value = self.get(path, default)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(value, (int, float)):
            return value != 0
        return default

    def withPackOptions(self, options: Mapping[str, Any] | None) -> Settings:
        """Returns new Settings with the pack's `options` layered between user and cli."""
        layers = [layer for layer in self._stack.layers() if layer.scope != "pack"]
        if options:
            layers.append(ConfigLayer(name="pack options", scope="pack", data=dict(options)))
        return Settings(ConfigStack(layers))

    def effective(self) -> dict[str, Any]:
        return self._view.effective()



def loadSettings(packDir: str | Path | None = None, cliOverrides: Mapping[str, Any] | None = None) -> Settings:
    """
    Builds the configuration stack: defaults < user file < pack options < cli flags.

    Pack options are read from the pack file inside `packDir` when it exists.
    The pack file name itself can only come from defaults, the user file or the cli.
    """
    stack = ConfigStack()
    stack.addLayer(ConfigLayer(name="defaults", scope="defaults", data=DEFAULTS))

    userPath = userConfigPath()
    stack.addLayer(ConfigLayer(name=str(userPath), scope="user", data=_loadOptionalFile(userPath)))

    cliData = _expandDotted(cliOverrides or {})
    if cliData:
        stack.addLayer(ConfigLayer(name="cli", scope="cli", data=cliData))

    if packDir is not None:
        packFile = Path(packDir) / str(stack.view().get("pack.file", "pack.json5"))
        if packFile.exists():
            try:
                options = readDocument(packFile).get("options")
            except (PackIOError, ParseError) as err:
                # The command that loads the pack will report this properly
                logger.debug("Pack options unavailable from '%s': %s", packFile, err)
                options = None
            if isinstance(options, Mapping) and options:
                stack.addLayer(ConfigLayer(name=f"{packFile} options", scope="pack", data=dict(options)))

    return Settings(stack)
