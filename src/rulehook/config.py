"""Configuration management for rulehook.

Configuration Discovery Precedence (Highest to Lowest Priority):
===============================================================

1. **RULEHOOK_CONFIG_DIR Environment Variable** (Highest Priority)
   - Set by the CLI when launching mitmdump, or manually
   - Looks for: `${RULEHOOK_CONFIG_DIR}/rulehook.yaml`

2. **~/.rulehook Directory** (Fallback)
   - Looks for: `~/.rulehook/rulehook.yaml`

If no `rulehook.yaml` is found, default configuration is applied. The
defaults reproduce the stock rule: image CDNs get a 1x1 GIF, anything on
google gets an empty JSON array and feed responses are forwarded to a
collector on 127.0.0.1:8080.

Example:
--------
rulehook:
  collector:
    host: 10.0.0.5
    port: 9000
  capture_patterns:
    - "aweme/v1/feed"
  mock_rules:
    - name: image
      category: gif
      patterns: ["byteimg\\\\.com"]
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "rulehook.yaml"
DEFAULT_CONFIG_DIR = Path.home() / ".rulehook"


class CollectorConfig(BaseModel):
    """Side-channel collector endpoint."""

    scheme: Literal["http", "https"] = "http"
    """URL scheme used for reports"""

    host: str = "127.0.0.1"
    """Collector host"""

    port: int | None = 8080
    """Collector port (None means 80 for http, 443 for https)"""

    path: str = "/"
    """Default path reports are POSTed to"""

    timeout: float | None = 10.0
    """Seconds before an in-flight report is abandoned (None disables)"""

    @property
    def resolved_port(self) -> int:
        """Port with scheme defaults applied."""
        if self.port:
            return self.port
        return 80 if self.scheme == "http" else 443

    def url_for(self, path: str | None = None) -> str:
        """Build the absolute URL for a report path."""
        target = path or self.path
        if not target.startswith("/"):
            target = f"/{target}"
        return f"{self.scheme}://{self.host}:{self.resolved_port}{target}"


class MockRuleConfig(BaseModel):
    """A mock rule: URLs matching any pattern get a canned response."""

    name: str
    category: str
    """Payload category understood by the decision builder (gif, json)"""

    patterns: list[str] = Field(default_factory=list)


class HttpsConfig(BaseModel):
    """CONNECT/TLS interception policy."""

    intercept: bool = True
    """Default answer for tunnels that match no passthrough pattern"""

    passthrough_hosts: list[str] = Field(default_factory=list)
    """Host patterns that are tunneled without interception"""

    blocked_hosts: list[str] = Field(default_factory=list)
    """Host patterns whose CONNECT is refused"""

    blocked_status: int = 403


class LocalFileConfig(BaseModel):
    """Content served when a tunnel requests a local file replacement."""

    path: Path
    content_type: str = "image/png"
    status: int = 200


def default_mock_rules() -> list[MockRuleConfig]:
    return [
        MockRuleConfig(name="image", category="gif", patterns=[r"byteimg\.com", r"ixigua\.com"]),
        MockRuleConfig(name="api-stub", category="json", patterns=["google"]),
    ]


class RuleHookConfig(BaseSettings):
    """Main configuration for rulehook that reads from rulehook.yaml."""

    model_config = SettingsConfigDict(
        env_prefix="RULEHOOK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    collector: CollectorConfig = Field(default_factory=CollectorConfig)

    # Responses for URLs matching these patterns are reported to the collector
    capture_patterns: list[str] = Field(default_factory=lambda: ["aweme/v1/feed", "aweme/v1/search/item"])

    # Evaluated in declared order, first match wins
    mock_rules: list[MockRuleConfig] = Field(default_factory=default_mock_rules)

    https: HttpsConfig = Field(default_factory=HttpsConfig)

    local_file: LocalFileConfig | None = None

    # Extra headers added to requests that are not mocked
    request_headers: dict[str, str] = Field(default_factory=dict)

    forwarded_for: bool = False
    """Append the client address to X-Forwarded-For on forwarded requests"""

    rulehook_config_path: Path = Field(default_factory=lambda: Path("./rulehook.yaml"))

    @classmethod
    def from_yaml(cls, yaml_path: Path, **kwargs: Any) -> "RuleHookConfig":
        """Load configuration from a rulehook.yaml file.

        Args:
            yaml_path: Path to the rulehook.yaml file
            **kwargs: Additional keyword arguments

        Returns:
            RuleHookConfig instance

        Raises:
            pydantic.ValidationError: If a section has invalid values
        """
        if not yaml_path.exists():
            return cls(rulehook_config_path=yaml_path, **kwargs)

        with yaml_path.open() as f:
            data = yaml.safe_load(f) or {}

        rulehook_data = data.get("rulehook") or {}
        if not isinstance(rulehook_data, dict):
            logger.warning("Invalid rulehook section in %s: %s", yaml_path, type(rulehook_data))
            rulehook_data = {}

        # Paths in local_file are relative to the config file
        local_file = rulehook_data.get("local_file")
        if isinstance(local_file, dict) and "path" in local_file:
            file_path = Path(local_file["path"]).expanduser()
            if not file_path.is_absolute():
                file_path = yaml_path.parent / file_path
            rulehook_data = {**rulehook_data, "local_file": {**local_file, "path": file_path}}

        values = {**rulehook_data, **kwargs}
        values["rulehook_config_path"] = yaml_path
        return cls(**values)


# Global configuration instance
_config_instance: RuleHookConfig | None = None
_config_lock = threading.Lock()


def find_config_dir() -> Path:
    """Return the directory rulehook.yaml is read from."""
    env_config_dir = os.environ.get("RULEHOOK_CONFIG_DIR")
    if env_config_dir:
        return Path(env_config_dir)
    return DEFAULT_CONFIG_DIR


def get_config() -> RuleHookConfig:
    """Get the configuration instance."""
    global _config_instance

    if _config_instance is None:
        with _config_lock:
            # Double-check locking pattern
            if _config_instance is None:
                config_dir = find_config_dir()
                config_path = config_dir / CONFIG_FILENAME
                if config_path.exists():
                    logger.info("Loading rulehook config from: %s", config_path)
                else:
                    logger.info("rulehook.yaml not found at %s, using default config", config_path)
                _config_instance = RuleHookConfig.from_yaml(config_path)

    return _config_instance


def set_config_instance(config: RuleHookConfig) -> None:
    """Set the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = config


def clear_config_instance() -> None:
    """Clear the global configuration instance (for testing)."""
    global _config_instance
    _config_instance = None
