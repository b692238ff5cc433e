"""Tests for settings resolution (defaults, config file, environment)."""

import pytest

from firefly_observability.config import (
    ObservabilitySettings,
    find_config_file,
    load_config_file,
    load_settings,
)


@pytest.fixture
def isolated_dirs(tmp_path, monkeypatch):
    """Run in an empty working directory with an empty home."""
    work = tmp_path / "work"
    home = tmp_path / "home"
    work.mkdir()
    home.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(home))
    return work, home


TOML_CONFIG = """
[firefly.observability.metrics]
application = "orders"
environment = "prod"

[firefly.observability.tracing]
baggage-fields = ["X-Transaction-Id", "X-Tenant-Id"]

[firefly.observability.health]
enabled = false
"""

YAML_CONFIG = """
firefly:
  observability:
    metrics:
      enabled: false
    tracing:
      baggage_fields: [X-Request-Id]
"""


class TestDefaults:
    """Tests for default settings."""

    def test_everything_enabled(self):
        settings = ObservabilitySettings()

        assert settings.metrics.enabled
        assert settings.tracing.enabled
        assert settings.health.enabled
        assert settings.metrics.application == "unknown"
        assert settings.tracing.baggage_fields == ["X-Transaction-Id"]

    def test_defaults_are_not_shared(self):
        """Test list defaults are per instance."""
        a = ObservabilitySettings()
        a.tracing.baggage_fields.append("X-Other")

        assert ObservabilitySettings().tracing.baggage_fields == ["X-Transaction-Id"]

    def test_no_file_no_env(self, isolated_dirs):
        """Test load_settings falls back to defaults."""
        settings = load_settings(environ={})

        assert settings == ObservabilitySettings()


class TestFromDict:
    """Tests for building settings from nested mappings."""

    def test_dash_and_underscore_keys(self):
        settings = ObservabilitySettings.from_dict(
            {"tracing": {"baggage-fields": ["A"]}, "metrics": {"application": "orders"}}
        )

        assert settings.tracing.baggage_fields == ["A"]
        assert settings.metrics.application == "orders"

    def test_unknown_keys_ignored(self):
        settings = ObservabilitySettings.from_dict(
            {"metrics": {"exporter": "otlp"}, "logging": {"format": "json"}}
        )

        assert settings == ObservabilitySettings()

    def test_invalid_boolean(self):
        with pytest.raises(ValueError, match="metrics.enabled"):
            ObservabilitySettings.from_dict({"metrics": {"enabled": "maybe"}})

    def test_section_must_be_table(self):
        with pytest.raises(ValueError, match="must be a table"):
            ObservabilitySettings.from_dict({"metrics": True})


class TestConfigFiles:
    """Tests for config file discovery and parsing."""

    def test_toml_file(self, isolated_dirs):
        """Test ./firefly.toml is discovered and applied."""
        work, _ = isolated_dirs
        (work / "firefly.toml").write_text(TOML_CONFIG)

        settings = load_settings(environ={})

        assert find_config_file() == work / "firefly.toml"
        assert settings.metrics.application == "orders"
        assert settings.metrics.environment == "prod"
        assert settings.tracing.baggage_fields == ["X-Transaction-Id", "X-Tenant-Id"]
        assert settings.health.enabled is False

    def test_yaml_file(self, isolated_dirs):
        """Test ./firefly.yaml is discovered and applied."""
        work, _ = isolated_dirs
        (work / "firefly.yaml").write_text(YAML_CONFIG)

        settings = load_settings(environ={})

        assert settings.metrics.enabled is False
        assert settings.tracing.baggage_fields == ["X-Request-Id"]

    def test_toml_wins_over_yaml(self, isolated_dirs):
        work, _ = isolated_dirs
        (work / "firefly.toml").write_text(TOML_CONFIG)
        (work / "firefly.yaml").write_text(YAML_CONFIG)

        assert find_config_file() == work / "firefly.toml"

    def test_home_file(self, isolated_dirs):
        """Test the per-user file is used when the project has none."""
        _, home = isolated_dirs
        (home / ".firefly").mkdir()
        (home / ".firefly" / "observability.toml").write_text(TOML_CONFIG)

        assert load_settings(environ={}).metrics.application == "orders"

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.toml"
        path.write_text(TOML_CONFIG)

        assert load_settings(path, environ={}).metrics.environment == "prod"

    def test_malformed_file_warns(self, tmp_path):
        """Test a broken file warns and falls back to defaults."""
        path = tmp_path / "broken.toml"
        path.write_text("[firefly.observability\nenabled = ")

        with pytest.warns(UserWarning, match="Failed to load config"):
            assert load_config_file(path) == {}

    @pytest.mark.parametrize(
        "content",
        ["- a\n- b\n", "firefly: text\n", "firefly:\n  observability: [1, 2]\n"],
        ids=["top-level-list", "scalar-firefly", "list-section"],
    )
    def test_non_table_yaml_warns_and_uses_defaults(self, isolated_dirs, content):
        """Test a YAML file of the wrong shape is ignored with a warning."""
        work, _ = isolated_dirs
        path = work / "firefly.yaml"
        path.write_text(content)

        with pytest.warns(UserWarning, match="Ignoring config"):
            settings = load_settings(environ={})

        assert settings == ObservabilitySettings()

    def test_undecodable_file_warns(self, tmp_path):
        """Test a file that is not valid UTF-8 is reported, not raised."""
        path = tmp_path / "binary.yaml"
        path.write_bytes(b"\xff\xfe\x00firefly")

        with pytest.warns(UserWarning, match="Failed to load config"):
            assert load_config_file(path) == {}

    def test_file_without_section(self, tmp_path):
        path = tmp_path / "other.toml"
        path.write_text('[tool.other]\nkey = "value"\n')

        assert load_config_file(path) == {}


class TestEnvironment:
    """Tests for environment variable overrides."""

    def test_env_overrides_file(self, isolated_dirs):
        """Test precedence is env > file > defaults."""
        work, _ = isolated_dirs
        (work / "firefly.toml").write_text(TOML_CONFIG)

        settings = load_settings(
            environ={
                "FIREFLY_OBSERVABILITY_METRICS_ENVIRONMENT": "staging",
                "FIREFLY_OBSERVABILITY_HEALTH_ENABLED": "yes",
                "FIREFLY_OBSERVABILITY_TRACING_BAGGAGE_FIELDS": "X-A, X-B",
            }
        )

        assert settings.metrics.application == "orders"
        assert settings.metrics.environment == "staging"
        assert settings.health.enabled is True
        assert settings.tracing.baggage_fields == ["X-A", "X-B"]

    @pytest.mark.parametrize("raw,expected", [("false", False), ("0", False), ("ON", True)])
    def test_boolean_spellings(self, raw, expected):
        settings = ObservabilitySettings().apply_env(
            {"FIREFLY_OBSERVABILITY_TRACING_ENABLED": raw}
        )

        assert settings.tracing.enabled is expected

    def test_dotenv_file_is_loaded(self, isolated_dirs, monkeypatch):
        """Test a .env file in the working directory feeds os.environ."""
        work, _ = isolated_dirs
        # setenv first so the value loaded from .env is removed on teardown
        monkeypatch.setenv("FIREFLY_OBSERVABILITY_METRICS_APPLICATION", "placeholder")
        monkeypatch.delenv("FIREFLY_OBSERVABILITY_METRICS_APPLICATION")
        (work / ".env").write_text("FIREFLY_OBSERVABILITY_METRICS_APPLICATION=billing\n")

        settings = load_settings()

        assert settings.metrics.application == "billing"
