"""Action configuration.

Settings come from action inputs (``INPUT_<NAME>`` environment variables).
An optional YAML file named by the ``config_file`` input supplies values
for inputs that were left empty:

    # buildcache-action.yaml
    version: v0.28.1
    cache_key: macos-clang
    cache_store: http
    cache_store_url: https://cache.example.com/buildcache
    save_cache: true

Precedence: input > YAML file > default.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .core.environment import ActionEnvironment, parse_bool
from .core.exceptions import ConfigError

logger = logging.getLogger(__name__)

VALID_STORES = ("local", "http")

# debug input values that leave buildcache debugging off
DEBUG_OFF_VALUES = {"", "false", "no", "off", "0"}


def default_store_path(env: ActionEnvironment) -> str:
    """Default local store: ``<RUNNER_TOOL_CACHE or ~/.cache>/buildcache-action``."""
    base = env.get("RUNNER_TOOL_CACHE")
    if base:
        return str(Path(base) / "buildcache-action")
    return str(Path.home() / ".cache" / "buildcache-action")


def normalize_debug(value) -> str:
    """
    Normalize the ``debug`` input to a BUILDCACHE_DEBUG level.

    Returns:
        The level, or "" when debugging is off (empty, false, no, off, 0)
    """
    text = "" if value is None else str(value).strip()
    return "" if text.lower() in DEBUG_OFF_VALUES else text


@dataclass
class ActionConfig:
    """Validated action settings."""

    version: str = ""
    cache_key: str = ""
    cache_dir: str = ""
    save_cache: bool = True
    zero_buildcache_stats: bool = True
    max_cache_size: str = "500000000"
    debug: str = ""
    cache_store: str = "local"
    cache_store_path: str = ""
    cache_store_url: str = ""
    cache_store_token: str = ""
    request_timeout: float = 30.0
    download_timeout: float = 300.0

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.debug = normalize_debug(self.debug)

        if self.cache_store not in VALID_STORES:
            raise ConfigError(
                f"Invalid cache_store: {self.cache_store}. "
                f"Must be one of: {', '.join(VALID_STORES)}"
            )

        if self.cache_store == "http" and not self.cache_store_url:
            raise ConfigError("cache_store 'http' requires 'cache_store_url'")

        if not str(self.max_cache_size).isdigit():
            raise ConfigError(
                f"max_cache_size must be a number of bytes, got: {self.max_cache_size!r}"
            )

        for name in ("request_timeout", "download_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got: {value}")


def load_yaml_config(config_file: Path) -> Dict[str, Any]:
    """
    Load and parse a YAML configuration file.

    Raises:
        ConfigError: If the file is missing, unparsable or not a mapping
    """
    if not config_file.exists():
        raise ConfigError(f"Configuration file not found: {config_file}")

    logger.debug(f"Loading configuration from {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    config = config or {}
    if not isinstance(config, dict):
        raise ConfigError(f"{config_file} must contain a mapping of settings")
    return config


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Convert a raw input or YAML value to the field's type."""
    if isinstance(default, bool):
        return parse_bool(value, name)
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Input '{name}' must be a number, got: {value!r}") from e
    return "" if value is None else str(value).strip()


def load_config(env: ActionEnvironment, config_file: Optional[Path] = None) -> ActionConfig:
    """
    Build the action configuration.

    Args:
        env: CI environment providing the inputs
        config_file: YAML file (default: the ``config_file`` input, if any)

    Returns:
        ActionConfig

    Raises:
        ConfigError: If any value is invalid
    """
    if config_file is None and env.has_input("config_file"):
        config_file = Path(os.path.expanduser(env.get_input("config_file")))

    file_values: Dict[str, Any] = {}
    if config_file is not None:
        file_values = load_yaml_config(Path(config_file))
        unknown = set(file_values) - {f.name for f in fields(ActionConfig)}
        if unknown:
            logger.warning(f"Ignoring unknown settings in {config_file}: {sorted(unknown)}")

    values: Dict[str, Any] = {}
    for f in fields(ActionConfig):
        if env.has_input(f.name):
            raw = env.get_input(f.name)
        elif file_values.get(f.name) is not None:
            raw = file_values[f.name]
        else:
            continue
        values[f.name] = _coerce(f.name, raw, f.default)

    if not values.get("cache_store_path"):
        values["cache_store_path"] = default_store_path(env)

    config = ActionConfig(**values)
    logger.debug(
        f"Configuration: version={config.version or 'latest'} "
        f"cache_key={config.cache_key!r} cache_store={config.cache_store}"
    )
    return config
