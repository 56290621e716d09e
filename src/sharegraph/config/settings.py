"""Settings for one sharegraph invocation.

Values come from, strongest first: keyword arguments (the CLI flags),
``SHAREGRAPH_*`` environment variables (``__`` separates a section from
its key), and ``sharegraph.toml``. Anything still unset keeps the
defaults in :mod:`sharegraph.config.models`.

The data root is the directory that holds ``.sharegraph/``. It is found
the way git finds a work tree: walk up from the working directory to the
nearest ``sharegraph.toml`` or existing store.
"""

from __future__ import annotations

import os
import tomllib
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, TomlConfigSettingsSource

from sharegraph.config.models import (
    CheckConfig,
    ConnectionsConfig,
    DatabaseConfig,
    HouseholdsConfig,
    NotificationsConfig,
    PluginsConfig,
    SharingConfig,
)
from sharegraph.infrastructure.database.engine import DATA_DIRNAME

CONFIG_FILENAME = "sharegraph.toml"
CONFIG_ENV_VAR = "SHAREGRAPH_CONFIG"

_toml_file: ContextVar[Path | None] = ContextVar("sharegraph_toml_file", default=None)


class ConfigError(ValueError):
    """The config file exists but is not valid TOML."""


def locate_root(start: Path | None = None) -> tuple[Path, Path | None]:
    """Return ``(data_root, config_file)`` for a working directory.

    ``SHAREGRAPH_CONFIG`` names the config file directly and its directory
    becomes the root. Otherwise the nearest ancestor of *start* holding
    ``sharegraph.toml`` or a ``.sharegraph/`` store wins. With no match
    the root is *start* itself and no config file applies.
    """
    origin = (start or Path.cwd()).resolve()
    pinned = os.environ.get(CONFIG_ENV_VAR)
    if pinned:
        config = Path(pinned)
        return (config.parent, config) if config.is_file() else (origin, None)

    for directory in (origin, *origin.parents):
        config = directory / CONFIG_FILENAME
        if config.is_file():
            return directory, config
        if (directory / DATA_DIRNAME).is_dir():
            return directory, None
    return origin, None


class ShareGraphSettings(BaseSettings):
    """Frozen settings object handed to the store and every service.

    Attributes:
        data_root: Directory holding ``.sharegraph/``.
        config_path: The TOML file in effect, or None.
        actor: Identifier of the acting user (``--as``), resolved at the
            CLI boundary.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "SHAREGRAPH_",
        "env_nested_delimiter": "__",
    }

    data_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False
    sync: bool = False
    actor: str | None = None

    connections: ConnectionsConfig = Field(default_factory=ConnectionsConfig)
    households: HouseholdsConfig = Field(default_factory=HouseholdsConfig)
    sharing: SharingConfig = Field(default_factory=SharingConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    plugins: PluginsConfig = Field(default_factory=PluginsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    check: CheckConfig = Field(default_factory=CheckConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml = TomlConfigSettingsSource(settings_cls, toml_file=_toml_file.get())
        return init_settings, env_settings, toml

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        data_root: Path | None = None,
        **cli_flags: Any,
    ) -> ShareGraphSettings:
        """Build settings for a CLI run.

        An explicit *config_path* skips the walk. An explicit *data_root*
        pins the root but still picks up the config governing it. Flags
        passed as None are dropped so that env vars and TOML apply.

        Raises:
            ConfigError: The config file is not valid TOML.
        """
        located_root, toml_path = locate_root(data_root)
        if config_path:
            explicit = Path(config_path)
            toml_path = explicit if explicit.is_file() else None
            located_root = explicit.parent if toml_path else located_root
        root = data_root if data_root is not None else located_root

        flags = {k: v for k, v in cli_flags.items() if v is not None}
        token = _toml_file.set(toml_path)
        try:
            return cls(data_root=root, config_path=toml_path, **flags)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {toml_path}: {exc}") from exc
        finally:
            _toml_file.reset(token)
