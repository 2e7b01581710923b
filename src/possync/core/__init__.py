"""Core module - Configuration and shared types."""

from possync.core.config import (
    SETTING_AUTO_INTERVAL,
    SETTING_LAST_SYNC,
    SETTING_REMOTE_KEY,
    SETTING_REMOTE_URL,
    ConfigurationError,
    CredentialSource,
    EmbeddedCredentialSource,
    RemoteConfig,
    SettingsCredentialSource,
    default_sources,
    resolve_remote_config,
    write_embedded_config,
)
from possync.core.types import SyncPhase

__all__ = [
    # Config
    "ConfigurationError",
    "CredentialSource",
    "EmbeddedCredentialSource",
    "RemoteConfig",
    "SettingsCredentialSource",
    "default_sources",
    "resolve_remote_config",
    "write_embedded_config",
    # Settings keys
    "SETTING_AUTO_INTERVAL",
    "SETTING_LAST_SYNC",
    "SETTING_REMOTE_KEY",
    "SETTING_REMOTE_URL",
    # Types
    "SyncPhase",
]
