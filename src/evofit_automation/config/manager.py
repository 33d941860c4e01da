"""Locate, layer and persist the automation config file.

Values resolve in this order, lowest first: schema defaults, the TOML
file, ``EVOFIT_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
import platform
import stat
import tomllib
from pathlib import Path
from typing import Any

import tomli_w

from evofit_automation.config.schema import AutomationConfig

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = "EVOFIT_CONFIG"

_CONFIG_DIR = Path("~/.config/evofit").expanduser()
_CONFIG_FILE = "automation.toml"

# Relative values for these engine keys are anchored at the config file.
_PATH_KEYS = ("data_dir", "workflows_file")


class ConfigManager:
    """Reads and writes ``automation.toml``.

    The file is ``$EVOFIT_CONFIG`` when that is set and no ``config_dir`` is
    given, otherwise ``automation.toml`` under ``config_dir``
    (``~/.config/evofit`` by default). A missing or unreadable file counts
    as empty, so :meth:`load` still returns a usable config.
    """

    def __init__(self, config_dir: Path | None = None) -> None:
        override = os.environ.get(CONFIG_PATH_ENV)
        if config_dir is None and override:
            self._path = Path(override).expanduser()
        else:
            self._path = (config_dir or _CONFIG_DIR) / _CONFIG_FILE

    def load(self) -> AutomationConfig:
        """Build the effective configuration.

        Raises:
            pydantic.ValidationError: If a file or environment value is invalid.
        """
        return AutomationConfig(**self.read_file())

    def read_file(self) -> dict[str, Any]:
        """Return the raw file sections with engine paths made absolute."""
        if not self._path.is_file():
            logger.debug("Config file not found at %s, using defaults", self._path)
            return {}

        try:
            with open(self._path, "rb") as fh:
                raw = tomllib.load(fh)
        except (tomllib.TOMLDecodeError, OSError) as exc:
            logger.warning("Failed to read config at %s: %s (using defaults)", self._path, exc)
            return {}

        engine = raw.get("engine")
        if isinstance(engine, dict):
            for key in _PATH_KEYS:
                value = engine.get(key)
                if isinstance(value, str) and value:
                    engine[key] = str(self._anchor(value))
        return raw

    def _anchor(self, value: str) -> Path:
        path = Path(value).expanduser()
        return path if path.is_absolute() else self._path.parent / path

    def save(self, config: AutomationConfig) -> None:
        """Persist configuration as TOML (``chmod 600`` on POSIX)."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "wb") as fh:
            tomli_w.dump(config.model_dump(), fh)

        if platform.system() in ("Linux", "Darwin"):
            os.chmod(self._path, stat.S_IRUSR | stat.S_IWUSR)

        logger.debug("Config saved to %s", self._path)

    def init(self, force: bool = False) -> bool:
        """Write a file holding the built-in defaults.

        Environment overrides are not written. Returns False without
        touching anything when the file exists and ``force`` is off.
        """
        if self.exists() and not force:
            return False
        self.save(AutomationConfig.model_construct())
        logger.info("Wrote default config to %s", self._path)
        return True

    def exists(self) -> bool:
        return self._path.is_file()

    def get_config_path(self) -> Path:
        return self._path
