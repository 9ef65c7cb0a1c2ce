"""
Config - Layered settings for the fault interceptor.

Merge order (later overrides earlier):
1. Defaults
2. ``.env`` file
3. Environment variables (``MISTAKE_*`` prefix)
4. Manual overrides
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values

from .model import GENERIC_MESSAGE


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Invalid boolean for '{key}': {value!r}")


@dataclass(frozen=True)
class MistakeConfig:
    """
    Settings for ``Mistake`` and ``hooks.install``.

    Attributes:
        display_errors: Echo faults through the platform's display hooks
        generic_message: Client message for non-domain faults
        logger_name: Logger receiving fault records
        capture_warnings: Route ``warnings`` through the runtime error path
    """
    display_errors: bool = False
    generic_message: str = GENERIC_MESSAGE
    logger_name: str = "mistake.faults"
    capture_warnings: bool = True

    @classmethod
    def load(
        cls,
        env_file: Optional[str] = None,
        env_prefix: str = "MISTAKE_",
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "MistakeConfig":
        """
        Load configuration from defaults, ``.env``, environment and overrides.

        Args:
            env_file: Path to a .env file (skipped if missing)
            env_prefix: Prefix for environment variables
            overrides: Field values with highest precedence
            environ: Environment mapping (``os.environ`` if None)

        Raises:
            ConfigError: unknown override key or invalid value
        """
        known = {f.name: f for f in fields(cls)}
        data: Dict[str, Any] = {}

        if env_file and Path(env_file).exists():
            data.update(cls._select(dotenv_values(env_file), env_prefix))

        data.update(cls._select(os.environ if environ is None else environ, env_prefix))

        for key, value in (overrides or {}).items():
            if key not in known:
                raise ConfigError(f"Unknown config key: '{key}'")
            data[key] = value

        values: Dict[str, Any] = {}
        for key, value in data.items():
            if known[key].type in (bool, "bool"):
                values[key] = _parse_bool(key, value)
            elif value is None:
                raise ConfigError(f"Missing value for '{key}'")
            else:
                values[key] = str(value)

        return cls(**values)

    @classmethod
    def _select(cls, source: Mapping[str, Optional[str]], prefix: str) -> Dict[str, Any]:
        known = {f.name for f in fields(cls)}
        selected = {}
        for key, value in source.items():
            if not key.startswith(prefix):
                continue
            name = key[len(prefix):].lower()
            if name in known:
                selected[name] = value
        return selected
