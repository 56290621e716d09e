"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, sharegraph.toml only contains
overrides. A fresh data root needs no config file at all.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ConnectionsConfig(BaseModel):
    """[connections] section."""

    model_config = {"frozen": True}

    reverse_request_accepts: bool = True
    notify_on_remove: bool = True


class HouseholdsConfig(BaseModel):
    """[households] section."""

    model_config = {"frozen": True}

    max_name_length: int = 80
    max_members: int = 50


class SharingConfig(BaseModel):
    """[sharing] section."""

    model_config = {"frozen": True}

    require_connection: bool = False
    revoke_on_disconnect: bool = True


class NotificationsConfig(BaseModel):
    """[notifications] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    deep_link_template: str = "/documents/{document_id}"
    max_workers: int = Field(default=2, ge=1)


class PluginsConfig(BaseModel):
    """[plugins] section."""

    model_config = {"frozen": True}

    entry_points: bool = True


class CheckConfig(BaseModel):
    """[check] section."""

    model_config = {"frozen": True}

    backup_max_count: int = Field(default=10, ge=1)


class DatabaseConfig(BaseModel):
    """[database] section."""

    model_config = {"frozen": True}

    busy_timeout_ms: int = 5000
