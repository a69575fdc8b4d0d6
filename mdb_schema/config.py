"""
Runtime configuration for the schema commands.

Configuration is merged from four sources, later ones winning:

    1. defaults               make_default_config()
    2. config file            <project>/.hz/config.toml, or --config PATH
    3. environment            HZ_PROJECT_NAME, HZ_CONNECT, HZ_START_MONGODB, HZ_DEBUG
    4. command-line flags

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(".hz") / "config.toml"
DEFAULT_SCHEMA_FILE = Path(".hz") / "schema.toml"
DEFAULT_MONGO_HOST = "localhost"
DEFAULT_MONGO_PORT = 27017

ENV_PREFIX = "HZ_"

YES_VALUES = ("yes", "true", "on", "1")
NO_VALUES = ("no", "false", "off", "0")


def make_default_config() -> Dict[str, Any]:
    return {
        "project_path": ".",
        "project_name": None,
        "mongo_host": DEFAULT_MONGO_HOST,
        "mongo_port": DEFAULT_MONGO_PORT,
        "start_mongodb": True,
        "debug": False,
    }


def parse_yes_no_option(value: Any, option: str = "option") -> Optional[bool]:
    """
    Parse a yes/no value. None stays None (option not given).

    Raises:
        ConfigurationError: If the value is not recognised
    """
    if value is None or isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in YES_VALUES:
        return True
    if normalized in NO_VALUES:
        return False
    raise ConfigurationError(f"Unexpected value for {option}: '{value}' (expected yes or no)")


def parse_connect(value: str) -> Tuple[str, int]:
    """
    Parse a "host:port" string.

    Raises:
        ConfigurationError: If the port is missing or not a number
    """
    host, sep, port = str(value).rpartition(":")
    if not sep or not host:
        raise ConfigurationError(f"Expected --connect HOST:PORT, but found '{value}'")
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigurationError(f"Invalid port in --connect value: '{value}'") from None
    if not 0 < port_number < 65536:
        raise ConfigurationError(f"Port out of range in --connect value: '{value}'")
    return host, port_number


def _apply_connect(config: Dict[str, Any], connect: Optional[str], start_mongodb: Optional[bool]) -> None:
    if connect is not None:
        if start_mongodb:
            raise ConfigurationError("Cannot provide both connect and start_mongodb")
        config["mongo_host"], config["mongo_port"] = parse_connect(connect)
        config["start_mongodb"] = False
    if start_mongodb is not None:
        config["start_mongodb"] = start_mongodb


def _normalize(raw: Dict[str, Any], source: str) -> Dict[str, Any]:
    config: Dict[str, Any] = {}
    if raw.get("project_name") is not None:
        config["project_name"] = str(raw["project_name"])
    _apply_connect(
        config,
        raw.get("connect"),
        parse_yes_no_option(raw.get("start_mongodb"), f"start_mongodb in {source}"),
    )
    debug = parse_yes_no_option(raw.get("debug"), f"debug in {source}")
    if debug is not None:
        config["debug"] = debug
    return config


def read_config_from_config_file(
    project_path: Optional[str], config_path: Optional[str] = None
) -> Dict[str, Any]:
    """
    Read the TOML config file.

    A missing default file is ignored; a missing file named explicitly is
    an error.
    """
    explicit = config_path is not None
    if explicit:
        path = Path(config_path)
    else:
        path = Path(project_path or ".") / DEFAULT_CONFIG_FILE

    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to read config file {path}: {e}") from e

    logger.debug(f"Loaded config file {path}")
    return _normalize(raw, str(path))


def read_config_from_env(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    environ = os.environ if environ is None else environ
    raw = {}
    for key in ("project_name", "connect", "start_mongodb", "debug"):
        value = environ.get(ENV_PREFIX + key.upper())
        if value is not None:
            raw[key] = value
    return _normalize(raw, "environment")


def read_config_from_flags(flags: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize command-line flag values; flags that were not given are None."""
    config = _normalize(flags, "flags")
    if flags.get("project_path") is not None:
        config["project_path"] = flags["project_path"]
    return config


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    merged.update({k: v for k, v in override.items() if v is not None})
    return merged


def load_config(flags: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Build the runtime configuration for a schema command.

    Args:
        flags: Command-line values (project_path, project_name, connect,
            start_mongodb, debug, config)
        environ: Environment mapping (default: os.environ)
    """
    config = make_default_config()
    config = merge_configs(config, read_config_from_config_file(flags.get("project_path"), flags.get("config")))
    config = merge_configs(config, read_config_from_env(environ))
    config = merge_configs(config, read_config_from_flags(flags))

    if config["project_name"] is None:
        config["project_name"] = Path(config["project_path"]).resolve().name
    return config
