"""Tests for rulehook configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from rulehook.config import (
    RuleHookConfig,
    clear_config_instance,
    find_config_dir,
    get_config,
    set_config_instance,
)


@pytest.fixture(autouse=True)
def cleanup():
    """Clean up config between tests."""
    yield
    clear_config_instance()


class TestDefaults:
    """Tests for the built-in configuration."""

    def test_default_rules(self) -> None:
        config = RuleHookConfig()

        assert [r.name for r in config.mock_rules] == ["image", "api-stub"]
        assert config.mock_rules[0].category == "gif"
        assert config.mock_rules[0].patterns == [r"byteimg\.com", r"ixigua\.com"]
        assert config.mock_rules[1].patterns == ["google"]
        assert "aweme/v1/feed" in config.capture_patterns
        assert config.collector.url_for() == "http://127.0.0.1:8080/"
        assert config.https.intercept is True
        assert config.local_file is None
        assert config.request_headers == {}

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RULEHOOK_COLLECTOR__HOST", "10.1.2.3")
        monkeypatch.setenv("RULEHOOK_DEBUG", "true")

        config = RuleHookConfig()

        assert config.collector.host == "10.1.2.3"
        assert config.debug is True


class TestFromYaml:
    """Tests for RuleHookConfig.from_yaml."""

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        config = RuleHookConfig.from_yaml(tmp_path / "rulehook.yaml")

        assert config.rulehook_config_path == tmp_path / "rulehook.yaml"
        assert len(config.mock_rules) == 2

    def test_full_file(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "rulehook.yaml"
        yaml_path.write_text(
            """
rulehook:
  debug: true
  collector:
    host: collector.internal
    port: 9000
    path: /ingest
  capture_patterns:
    - "api/v2/timeline"
  mock_rules:
    - name: tracking
      category: gif
      patterns: ["pixel\\\\.example\\\\.com"]
  https:
    intercept: false
    passthrough_hosts: ["bank\\\\.example"]
  local_file:
    path: replacement.png
  request_headers:
    X-Request-Id: rulehook
  forwarded_for: true
"""
        )

        config = RuleHookConfig.from_yaml(yaml_path)

        assert config.debug is True
        assert config.collector.url_for() == "http://collector.internal:9000/ingest"
        assert config.capture_patterns == ["api/v2/timeline"]
        assert len(config.mock_rules) == 1
        assert config.mock_rules[0].patterns == [r"pixel\.example\.com"]
        assert config.https.intercept is False
        assert config.https.passthrough_hosts == [r"bank\.example"]
        assert config.local_file is not None
        assert config.local_file.path == tmp_path / "replacement.png"
        assert config.local_file.content_type == "image/png"
        assert config.request_headers == {"X-Request-Id": "rulehook"}
        assert config.forwarded_for is True

    def test_partial_file_keeps_other_defaults(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "rulehook.yaml"
        yaml_path.write_text("rulehook:\n  collector:\n    port: 9999\n")

        config = RuleHookConfig.from_yaml(yaml_path)

        assert config.collector.url_for() == "http://127.0.0.1:9999/"
        assert [r.name for r in config.mock_rules] == ["image", "api-stub"]

    def test_empty_file(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "rulehook.yaml"
        yaml_path.write_text("")

        assert len(RuleHookConfig.from_yaml(yaml_path).mock_rules) == 2

    def test_invalid_section_type(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        yaml_path = tmp_path / "rulehook.yaml"
        yaml_path.write_text("rulehook: [1, 2]\n")

        config = RuleHookConfig.from_yaml(yaml_path)

        assert len(config.mock_rules) == 2
        assert "Invalid rulehook section" in caplog.text

    def test_invalid_value(self, tmp_path: Path) -> None:
        yaml_path = tmp_path / "rulehook.yaml"
        yaml_path.write_text("rulehook:\n  collector:\n    port: not-a-port\n")

        with pytest.raises(ValidationError):
            RuleHookConfig.from_yaml(yaml_path)


class TestGetConfig:
    """Tests for the global configuration instance."""

    def test_env_config_dir(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "rulehook.yaml").write_text("rulehook:\n  capture_patterns: ['x/y']\n")
        monkeypatch.setenv("RULEHOOK_CONFIG_DIR", str(tmp_path))

        assert find_config_dir() == tmp_path
        assert get_config().capture_patterns == ["x/y"]

    def test_instance_is_cached(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RULEHOOK_CONFIG_DIR", str(tmp_path))

        assert get_config() is get_config()

    def test_set_config_instance(self) -> None:
        config = RuleHookConfig(debug=True)
        set_config_instance(config)

        assert get_config() is config
