"""Offline client configuration.

Configuration for the Ukulima offline sync client. All settings can be
overridden via environment variables with the UKULIMA_ prefix.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from ukulima.core.constants import (
    DEFAULT_API_BASE,
    DEFAULT_PROBE_PORT,
    DEFAULT_PROBE_TIMEOUT_S,
    DEFAULT_REQUEST_TIMEOUT_S,
    MAX_RETRIES,
    MIRROR_HORIZON_DAYS,
)


@dataclass
class OfflineConfig:
    """Offline client configuration."""

    # Remote API
    api_base: str = DEFAULT_API_BASE
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S

    # Durable storage
    data_dir: Path = field(default_factory=lambda: Path.home() / ".ukulima")

    # Reconciliation
    max_retries: int = MAX_RETRIES
    mirror_horizon_days: int = MIRROR_HORIZON_DAYS

    # Reachability probe (host defaults to the API host)
    probe_host: str = ""
    probe_port: int = DEFAULT_PROBE_PORT
    probe_timeout_s: float = DEFAULT_PROBE_TIMEOUT_S

    tenant_id: str = "default"

    def __post_init__(self):
        if not self.probe_host:
            self.probe_host = urlparse(self.api_base).hostname or "localhost"

    @classmethod
    def from_env(cls) -> "OfflineConfig":
        """Load configuration from environment variables."""
        config = cls()

        if "UKULIMA_API_BASE" in os.environ:
            config.api_base = os.environ["UKULIMA_API_BASE"].rstrip("/")
            config.probe_host = urlparse(config.api_base).hostname or "localhost"
        if "UKULIMA_REQUEST_TIMEOUT" in os.environ:
            config.request_timeout_s = float(os.environ["UKULIMA_REQUEST_TIMEOUT"])

        if "UKULIMA_DATA_DIR" in os.environ:
            config.data_dir = Path(os.environ["UKULIMA_DATA_DIR"]).expanduser()

        if "UKULIMA_MAX_RETRIES" in os.environ:
            config.max_retries = int(os.environ["UKULIMA_MAX_RETRIES"])
        if "UKULIMA_MIRROR_HORIZON_DAYS" in os.environ:
            config.mirror_horizon_days = int(os.environ["UKULIMA_MIRROR_HORIZON_DAYS"])

        if "UKULIMA_PROBE_HOST" in os.environ:
            config.probe_host = os.environ["UKULIMA_PROBE_HOST"]
        if "UKULIMA_PROBE_PORT" in os.environ:
            config.probe_port = int(os.environ["UKULIMA_PROBE_PORT"])
        if "UKULIMA_PROBE_TIMEOUT" in os.environ:
            config.probe_timeout_s = float(os.environ["UKULIMA_PROBE_TIMEOUT"])

        if "UKULIMA_TENANT_ID" in os.environ:
            config.tenant_id = os.environ["UKULIMA_TENANT_ID"]

        return config

    def validate(self) -> list[str]:
        """Validate configuration. Returns list of errors."""
        errors = []

        parsed = urlparse(self.api_base)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(f"api_base must be an http(s) URL, got {self.api_base!r}")
        if self.request_timeout_s <= 0:
            errors.append("request_timeout_s must be positive")
        if self.max_retries < 1:
            errors.append("max_retries must be at least 1")
        if self.mirror_horizon_days < 1:
            errors.append("mirror_horizon_days must be at least 1")
        if not 0 < self.probe_port < 65536:
            errors.append(f"probe_port out of range: {self.probe_port}")

        return errors
