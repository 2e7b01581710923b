"""Remote connection configuration and credential resolution.

This module provides:
- RemoteConfig: endpoint, secret and timeout for the remote store
- CredentialSource implementations (local settings, build-embedded defaults)
- resolve_remote_config: ordered resolution with a named failure
- write_embedded_config: generate the build-embedded defaults file
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from dotenv import dotenv_values

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

# Settings table keys. Names match the ones existing installs already use.
SETTING_REMOTE_URL = "supabase_url"
SETTING_REMOTE_KEY = "supabase_service_key"
SETTING_LAST_SYNC = "supabase_last_sync"
SETTING_AUTO_INTERVAL = "sync_auto_interval"

EMBEDDED_URL_KEY = "SUPABASE_URL"
EMBEDDED_SECRET_KEY = "SUPABASE_SERVICE_KEY"

EMBEDDED_CONFIG_PATH = Path(__file__).resolve().parent.parent / "sync_config.generated.json"


class ConfigurationError(Exception):
    """Remote credentials are missing from every configured source."""


@dataclass
class RemoteConfig:
    """Configuration for connecting to the remote store.

    Attributes:
        url: Base URL of the remote project (e.g., "https://abc.supabase.co").
        secret: Service key sent with every request.
        timeout: Per-request timeout in seconds.
        source: Name of the credential source that produced this config.
    """

    url: str
    secret: str
    timeout: float = 30.0
    source: str = "explicit"

    def __post_init__(self) -> None:
        """Normalize URL."""
        self.url = self.url.strip().rstrip("/")
        self.secret = self.secret.strip()


class SettingsReader(Protocol):
    """Anything that can read a value from the local settings table."""

    def get_setting(self, key: str) -> str | None: ...


class CredentialSource(Protocol):
    """A place remote credentials may come from."""

    name: str

    def load(self) -> RemoteConfig | None: ...


def _complete(url: str | None, secret: str | None, source: str) -> RemoteConfig | None:
    url = (url or "").strip()
    secret = (secret or "").strip()
    if not url or not secret:
        return None
    return RemoteConfig(url=url, secret=secret, source=source)


class SettingsCredentialSource:
    """Credentials persisted in the local settings table."""

    name = "local settings"

    def __init__(self, store: SettingsReader) -> None:
        self._store = store

    def load(self) -> RemoteConfig | None:
        return _complete(
            self._store.get_setting(SETTING_REMOTE_URL),
            self._store.get_setting(SETTING_REMOTE_KEY),
            self.name,
        )


class EmbeddedCredentialSource:
    """Defaults baked into the package at build time.

    The file is produced by ``possync build-config`` and is optional:
    a missing or unreadable file simply yields no credentials.
    """

    name = "embedded defaults"

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path is not None else EMBEDDED_CONFIG_PATH

    def load(self) -> RemoteConfig | None:
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable embedded config {self._path}: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return _complete(data.get(EMBEDDED_URL_KEY), data.get(EMBEDDED_SECRET_KEY), self.name)


def default_sources(store: SettingsReader) -> list[CredentialSource]:
    """Return the standard resolution order: local settings, then embedded defaults."""
    return [SettingsCredentialSource(store), EmbeddedCredentialSource()]


def resolve_remote_config(
    sources: Iterable[CredentialSource],
    timeout: float = 30.0,
) -> RemoteConfig:
    """Resolve remote credentials from the first source that has both values.

    Args:
        sources: Credential sources in priority order.
        timeout: Request timeout applied to the resolved config.

    Returns:
        The resolved RemoteConfig.

    Raises:
        ConfigurationError: If no source provides both URL and secret.
    """
    tried: list[str] = []
    for source in sources:
        config = source.load()
        if config is not None:
            config.timeout = timeout
            logger.debug(f"Using remote credentials from {source.name}")
            return config
        tried.append(source.name)
    raise ConfigurationError(
        "Remote URL and service key must be configured "
        f"(checked: {', '.join(tried) or 'no sources'}). "
        "Run 'possync configure' or build with embedded credentials."
    )


# === Build-time embedding ===

def read_build_credentials(
    environ: Mapping[str, str] | None = None,
    env_file: Path | None = None,
) -> tuple[str, str]:
    """Collect credentials for embedding from the environment or a .env file.

    The environment wins. A .env file may use dotenv syntax (``export``
    prefixes, quoted values, inline comments) or the bare format: first
    line the URL, second line the key.

    Returns:
        Tuple of (url, key); either may be empty.
    """
    environ = os.environ if environ is None else environ
    url = environ.get(EMBEDDED_URL_KEY, "").strip()
    key = environ.get(EMBEDDED_SECRET_KEY, "").strip()

    if (not url or not key) and env_file is not None and env_file.exists():
        content = env_file.read_text(encoding="utf-8")
        env = dotenv_values(env_file)
        url = url or (env.get(EMBEDDED_URL_KEY) or "").strip()
        key = key or (env.get(EMBEDDED_SECRET_KEY) or "").strip()
        if not url or not key:
            lines = [line.strip() for line in content.splitlines() if line.strip()]
            if not url and lines and lines[0].startswith("http"):
                url = lines[0]
            if not key and len(lines) >= 2 and "=" not in lines[1]:
                key = lines[1]
    return url, key


def write_embedded_config(url: str, key: str, path: Path | None = None) -> Path:
    """Write the build-embedded defaults file.

    Args:
        url: Remote URL (may be empty).
        key: Service key (may be empty).
        path: Output path (default: inside the installed package).

    Returns:
        Path written.
    """
    out = Path(path) if path is not None else EMBEDDED_CONFIG_PATH
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(
        json.dumps({EMBEDDED_URL_KEY: url, EMBEDDED_SECRET_KEY: key}, indent=2),
        encoding="utf-8",
    )
    if not url or not key:
        logger.warning(
            f"{EMBEDDED_URL_KEY} or {EMBEDDED_SECRET_KEY} missing; "
            "sync will require manual configuration"
        )
    return out
