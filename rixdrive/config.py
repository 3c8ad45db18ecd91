"""Configuration management for the Rixian Drive client.

Settings are resolved from environment variables first and then from the
config file at ``~/.config/rixdrive/config`` (simple ``KEY=value`` lines).
"""

from __future__ import annotations

import os
import ssl
from pathlib import Path
from typing import Optional

from .utils import DEFAULT_API_KEY_HEADER, DEFAULT_API_VERSION

ENV_API_URL = "RIXDRIVE_API_URL"
ENV_API_KEY = "RIXDRIVE_API_KEY"
ENV_API_KEY_HEADER = "RIXDRIVE_API_KEY_HEADER"
ENV_API_VERSION = "RIXDRIVE_API_VERSION"
ENV_TOKEN = "RIXDRIVE_TOKEN"

TLS_VERSIONS = {
    "1.2": ssl.TLSVersion.TLSv1_2,
    "1.3": ssl.TLSVersion.TLSv1_3,
}


class Config:
    """Resolved client settings."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or Path.home() / ".config" / "rixdrive"
        self.config_file = self.config_dir / "config"
        self._file_values: dict[str, str] = {}
        self._load_config_file()

    def _load_config_file(self) -> None:
        """Read KEY=value pairs from the config file, if it exists."""
        if not self.config_file.exists():
            return
        try:
            for line in self.config_file.read_text(encoding="utf-8").splitlines():
                line = line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, value = line.split("=", 1)
                self._file_values[key.strip()] = value.strip().strip('"').strip("'")
        except OSError:
            # Unreadable config file behaves like a missing one
            self._file_values = {}

    def _get(self, key: str) -> Optional[str]:
        return os.environ.get(key) or self._file_values.get(key) or None

    @property
    def api_url(self) -> Optional[str]:
        return self._get(ENV_API_URL)

    @property
    def api_key(self) -> Optional[str]:
        return self._get(ENV_API_KEY)

    @property
    def api_key_header(self) -> str:
        return self._get(ENV_API_KEY_HEADER) or DEFAULT_API_KEY_HEADER

    @property
    def api_version(self) -> str:
        return self._get(ENV_API_VERSION) or DEFAULT_API_VERSION

    @property
    def access_token(self) -> Optional[str]:
        return self._get(ENV_TOKEN)

    def is_configured(self) -> bool:
        """Check whether a base URL is available."""
        return self.api_url is not None

    def get_config_path(self) -> Path:
        return self.config_file

    def save(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
    ) -> None:
        """Persist settings to the config file, keeping existing entries.

        The file is created with owner-only permissions since it may hold
        secrets.
        """
        updates = {
            ENV_API_URL: api_url,
            ENV_API_KEY: api_key,
            ENV_TOKEN: access_token,
        }
        for key, value in updates.items():
            if value is not None:
                self._file_values[key] = value

        self.config_dir.mkdir(parents=True, exist_ok=True)
        lines = [f"{key}={value}" for key, value in sorted(self._file_values.items())]
        self.config_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        self.config_file.chmod(0o600)


class ClientSettings:
    """Transport settings for one client instance.

    Explicit arguments win over values from :class:`Config`.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        api_key_header: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: float = 30.0,
        min_tls_version: str = "1.2",
        source: Optional[Config] = None,
    ):
        source = source or config
        self.api_url = api_url or source.api_url
        self.api_key = api_key or source.api_key
        self.api_key_header = api_key_header or source.api_key_header
        self.api_version = api_version or source.api_version
        self.timeout = timeout
        if min_tls_version not in TLS_VERSIONS:
            raise ValueError(
                f"Unsupported minimum TLS version {min_tls_version!r}, "
                f"expected one of {', '.join(TLS_VERSIONS)}"
            )
        self.min_tls_version = min_tls_version

    def default_headers(self) -> dict[str, str]:
        headers = {"User-Agent": "rixdrive"}
        if self.api_key:
            headers[self.api_key_header] = self.api_key
        return headers

    def ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.minimum_version = TLS_VERSIONS[self.min_tls_version]
        return context


config = Config()
