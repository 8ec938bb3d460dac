"""Configuration management for gtfsproxy.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **GTFSPROXY_CONFIG_DIR Environment Variable** (Highest Priority)
   - Set by the CLI when it launches mitmdump, or manually
   - Looks for: `${GTFSPROXY_CONFIG_DIR}/gtfsproxy.yaml`

2. **~/.gtfsproxy Directory** (Fallback)
   - Looks for: `~/.gtfsproxy/gtfsproxy.yaml`

If no `gtfsproxy.yaml` is found, default configuration is applied.

Example gtfsproxy.yaml:
--------
gtfsproxy:
  debug: false
  backend_url: https://gtfs.example.org
  port: 4080
  backend:
    timeout: 10
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "gtfsproxy.yaml"


def default_config_dir() -> Path:
    return Path.home() / ".gtfsproxy"


class BackendConfig(BaseModel):
    """Outbound connection settings."""

    timeout: float = 30.0
    """Timeout in seconds for connecting to and reading from the backend"""

    follow_redirects: bool = True
    """Follow 3xx responses from the backend instead of returning them"""


class TransformConfig(BaseModel):
    """Feed conversion settings."""

    preview_bytes: int = Field(default=50, ge=0)
    """Number of body bytes hex-dumped to the debug log when decoding fails"""


class GtfsProxyConfig(BaseSettings):
    """Main configuration for gtfsproxy that reads from gtfsproxy.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="GTFSPROXY_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Reverse-proxy target; inbound paths are replayed against this origin
    backend_url: str = "http://localhost:8080"

    host: str = "127.0.0.1"
    port: int = 4080

    backend: BackendConfig = Field(default_factory=BackendConfig)
    transform: TransformConfig = Field(default_factory=TransformConfig)

    config_path: Path = Field(default_factory=lambda: default_config_dir() / CONFIG_FILENAME)

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "GtfsProxyConfig":
        """Load configuration from a gtfsproxy.yaml file.

        Values come from the `gtfsproxy:` section. A missing file yields defaults.

        Args:
            yaml_path: Path to the gtfsproxy.yaml file
            **kwargs: Overrides applied on top of the file

        Returns:
            GtfsProxyConfig instance

        Raises:
            pydantic.ValidationError: If a value in the file has the wrong type
        """
        data: dict[str, Any] = {}
        if yaml_path.exists():
            with yaml_path.open() as f:
                loaded = yaml.safe_load(f) or {}
            section = loaded.get("gtfsproxy", {}) if isinstance(loaded, dict) else {}
            if isinstance(section, dict):
                data = section
            else:
                logger.warning(f"Invalid gtfsproxy section in {yaml_path}: {type(section)}")

        return cls(**{**data, **kwargs, "config_path": yaml_path})

    def apply_logging(self) -> None:
        """Raise the root logger to DEBUG when debug is enabled."""
        if self.debug:
            logging.getLogger().setLevel(logging.DEBUG)


# Global configuration instance
_config_instance: GtfsProxyConfig | None = None
_config_lock = threading.Lock()


def find_config_path() -> tuple[Path, str]:
    """Resolve which gtfsproxy.yaml to use.

    Returns:
        Tuple of (path to gtfsproxy.yaml, description of where it came from)
    """
    env_config_dir = os.environ.get("GTFSPROXY_CONFIG_DIR")
    if env_config_dir:
        return Path(env_config_dir) / CONFIG_FILENAME, f"ENV:GTFSPROXY_CONFIG_DIR={env_config_dir}"
    return default_config_dir() / CONFIG_FILENAME, "HOME"


def get_config() -> GtfsProxyConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                config_path, config_source = find_config_path()
                if config_path.exists():
                    logger.info(f"Loading gtfsproxy config from: {config_path} (source: {config_source})")
                else:
                    logger.info(f"gtfsproxy.yaml not found at {config_path}, using default config")
                _config_instance = GtfsProxyConfig.from_yaml(config_path)

    return _config_instance


def set_config_instance(config: GtfsProxyConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
