"""Configuration management for docmap.

Configuration is loaded from a TOML file with environment variable overrides.

Configuration Resolution Order:
1. Environment variables (highest priority)
2. TOML config file
3. Built-in defaults

Example config.toml:

    [database]
    backend = "mongodb"
    hosts = ["db1.internal", "db2.internal"]
    name = "blog"

    [runtime]
    locale = "en-US"
    log_level = "info"

    [messages]
    "validation.field_required" = "Bitte '%s' angeben."
"""

import os
import sys
from pathlib import Path
from typing import Optional, Any

from .host.environment import get_db_path

# Python 3.11+ has tomllib in stdlib, otherwise use tomli
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


VALID_BACKENDS = {"sqlite", "mongodb"}


def load_toml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from TOML file.

    Args:
        config_path: Path to config.toml file

    Returns:
        Dictionary with configuration sections

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid TOML
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e


def get_config_path(config_override: Optional[Path] = None) -> Path:
    """Get configuration file path.

    Args:
        config_override: Optional explicit config path

    Returns:
        Path to configuration file (DOCMAP_CONFIG, else the user config)
    """
    if config_override:
        return Path(config_override)

    env_path = os.environ.get("DOCMAP_CONFIG")
    if env_path:
        return Path(env_path)

    return Path.home() / ".config/docmap/config.toml"


class Settings:
    """Connection settings with TOML configuration support.

    Explicit constructor arguments win over everything else, so tests and
    embedding applications can pin a value regardless of the environment.
    """

    def __init__(
        self,
        backend: Optional[str] = None,
        database_path: Optional[str | Path] = None,
        database_hosts: Optional[list[str]] = None,
        database_name: Optional[str] = None,
        database_user: Optional[str] = None,
        database_password: Optional[str] = None,
        locale: Optional[str] = None,
        log_level: Optional[str] = None,
        messages: Optional[dict[str, str]] = None,
        config_path: Optional[Path] = None,
    ):
        """Initialize settings.

        Args:
            backend: Store backend, 'sqlite' or 'mongodb'
            database_path: SQLite database file (sqlite backend)
            database_hosts: MongoDB hosts (mongodb backend)
            database_name: MongoDB database name (mongodb backend)
            database_user: Optional MongoDB user
            database_password: Optional MongoDB password
            locale: Locale of the validation message catalog
            log_level: Level applied to the 'docmap' logger
            messages: Message catalog overrides keyed by message key
            config_path: Optional explicit path to config.toml

        Raises:
            ValueError: If the backend is unknown or the TOML file is invalid
        """
        self._config: dict[str, Any] = {}

        config_path = get_config_path(config_path)
        if config_path.exists():
            self._config = load_toml_config(config_path)

        self._apply_config()

        # Explicit arguments override env vars and TOML
        if backend is not None:
            self.backend = backend
        if database_path is not None:
            self.database_path = Path(database_path)
        if database_hosts is not None:
            self.database_hosts = list(database_hosts)
        if database_name is not None:
            self.database_name = database_name
        if database_user is not None:
            self.database_user = database_user
        if database_password is not None:
            self.database_password = database_password
        if locale is not None:
            self.locale = locale
        if log_level is not None:
            self.log_level = log_level
        if messages is not None:
            self.messages.update(messages)

        if self.backend not in VALID_BACKENDS:
            raise ValueError(
                f"Invalid backend: {self.backend!r}. Must be one of: {sorted(VALID_BACKENDS)}"
            )

    def _apply_config(self):
        """Apply TOML configuration and environment overrides (env var > TOML > default)."""
        database_config = self._config.get("database", {})
        runtime_config = self._config.get("runtime", {})

        self.backend = os.environ.get(
            "DOCMAP_BACKEND",
            database_config.get("backend", "sqlite")
        )

        db_path_env = os.environ.get("DOCMAP_DATABASE_PATH")
        if db_path_env:
            self.database_path = Path(db_path_env)
        elif database_config.get("path"):
            self.database_path = Path(database_config["path"])
        else:
            self.database_path = get_db_path()

        hosts_env = os.environ.get("DOCMAP_DATABASE_HOSTS")
        if hosts_env:
            self.database_hosts = [host.strip() for host in hosts_env.split(",") if host.strip()]
        else:
            self.database_hosts = list(database_config.get("hosts", ["localhost"]))

        self.database_name = os.environ.get(
            "DOCMAP_DATABASE_NAME",
            database_config.get("name", "docmap")
        )
        self.database_user = os.environ.get(
            "DOCMAP_DATABASE_USER",
            database_config.get("user")
        )
        self.database_password = os.environ.get(
            "DOCMAP_DATABASE_PASSWORD",
            database_config.get("password")
        )

        self.locale = os.environ.get(
            "DOCMAP_LOCALE",
            runtime_config.get("locale", "en-US")
        )
        self.log_level = os.environ.get(
            "DOCMAP_LOG_LEVEL",
            runtime_config.get("log_level", "warning")
        )

        self.messages: dict[str, str] = dict(self._config.get("messages", {}))
