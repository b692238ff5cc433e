"""
Configuration for firefly-observability.

Settings are resolved from, lowest to highest priority:
1. Defaults (everything enabled)
2. Config file: ./firefly.toml, ./firefly.yaml, ~/.firefly/observability.toml,
   ~/.firefly/observability.yaml (first found wins), section `firefly.observability`
3. Environment variables: FIREFLY_OBSERVABILITY_<SECTION>_<FIELD>
   (a .env file in the current directory is loaded first)

Example firefly.toml:

    [firefly.observability.metrics]
    enabled = true
    application = "orders"
    environment = "prod"

    [firefly.observability.tracing]
    baggage-fields = ["X-Transaction-Id", "X-Tenant-Id"]
"""

from __future__ import annotations

import os
import tomllib
import warnings
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from firefly_observability.tracing.baggage import DEFAULT_BAGGAGE_FIELDS

ENV_PREFIX = "FIREFLY_OBSERVABILITY_"

_TRUE = {"true", "1", "yes", "on"}
_FALSE = {"false", "0", "no", "off"}


@dataclass
class MetricsSettings:
    enabled: bool = True
    """Create a collector registry and metrics bridges."""

    application: str = "unknown"
    """Common `application` tag on every metric."""

    environment: str = "default"
    """Common `environment` tag on every metric."""


@dataclass
class TracingSettings:
    enabled: bool = True
    """Wrap computations with spans (when a registry with handlers is supplied)."""

    baggage_fields: list[str] = field(default_factory=lambda: list(DEFAULT_BAGGAGE_FIELDS))
    """Baggage fields propagated alongside trace context."""


@dataclass
class HealthSettings:
    enabled: bool = True
    """Expose health indicators as gauges."""


@dataclass
class ObservabilitySettings:
    """Unified observability settings."""

    metrics: MetricsSettings = field(default_factory=MetricsSettings)
    tracing: TracingSettings = field(default_factory=TracingSettings)
    health: HealthSettings = field(default_factory=HealthSettings)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ObservabilitySettings:
        """
        Build settings from a nested mapping ({"metrics": {"enabled": False}}).

        Keys may use dashes or underscores. Unknown keys are ignored.

        Raises:
            ValueError: If a value cannot be converted
        """
        settings = cls()
        for section_name, section in _sections(settings).items():
            raw = _lookup(data or {}, section_name)
            if raw is None:
                continue
            if not isinstance(raw, Mapping):
                raise ValueError(f"Section '{section_name}' must be a table, got {raw!r}")
            for f in fields(section):
                value = _lookup(raw, f.name)
                if value is not None:
                    setattr(section, f.name, _convert(section_name, f.name, f.type, value))
        return settings

    def apply_env(self, environ: Mapping[str, str]) -> ObservabilitySettings:
        """Override fields from FIREFLY_OBSERVABILITY_<SECTION>_<FIELD> variables."""
        for section_name, section in _sections(self).items():
            for f in fields(section):
                key = f"{ENV_PREFIX}{section_name.upper()}_{f.name.upper()}"
                if key in environ:
                    setattr(section, f.name, _convert(section_name, f.name, f.type, environ[key]))
        return self


def _sections(settings: ObservabilitySettings) -> dict[str, Any]:
    return {f.name: getattr(settings, f.name) for f in fields(settings)}


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    for candidate in (key, key.replace("_", "-")):
        if candidate in data:
            return data[candidate]
    return None


def _convert(section: str, name: str, type_name: Any, value: Any) -> Any:
    where = f"{section}.{name}"
    type_name = str(type_name)
    if type_name == "bool":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"Invalid boolean for '{where}': {value!r}")
    if type_name.startswith("list"):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        if isinstance(value, list | tuple):
            return [str(v) for v in value]
        raise ValueError(f"Invalid list for '{where}': {value!r}")
    if isinstance(value, Mapping | list | tuple):
        raise ValueError(f"Invalid value for '{where}': {value!r}")
    return str(value)


def find_config_file() -> Path | None:
    """
    Find a configuration file in standard locations.

    Checks in order:
    1. ./firefly.toml
    2. ./firefly.yaml, ./firefly.yml
    3. ~/.firefly/observability.toml
    4. ~/.firefly/observability.yaml

    Returns:
        Path to config file or None if not found
    """
    candidates = [
        Path.cwd() / "firefly.toml",
        Path.cwd() / "firefly.yaml",
        Path.cwd() / "firefly.yml",
        Path.home() / ".firefly" / "observability.toml",
        Path.home() / ".firefly" / "observability.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_yaml(path: Path) -> dict[str, Any]:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config_file(path: Path) -> dict[str, Any]:
    """
    Load the `firefly.observability` section of a config file.

    Unreadable or malformed files produce a warning and an empty section.
    """
    try:
        if path.suffix == ".toml":
            data = load_toml(path)
        elif path.suffix in (".yaml", ".yml"):
            data = load_yaml(path)
        else:
            return {}
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        warnings.warn(f"Failed to load config from {path}: {e}", stacklevel=2)
        return {}

    section: Any = data
    for key in ("firefly", "observability"):
        if not isinstance(section, Mapping):
            warnings.warn(
                f"Ignoring config in {path}: expected a table, got {type(section).__name__}",
                stacklevel=2,
            )
            return {}
        section = section.get(key)
        if section is None:
            return {}
    if not isinstance(section, Mapping):
        warnings.warn(
            f"Ignoring config in {path}: 'firefly.observability' must be a table",
            stacklevel=2,
        )
        return {}
    return dict(section)


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
    *,
    load_env_file: bool = True,
) -> ObservabilitySettings:
    """
    Resolve settings from defaults, config file and environment.

    Args:
        path: Explicit config file (skips discovery)
        environ: Environment mapping (defaults to os.environ)
        load_env_file: Load ./.env into os.environ first

    Returns:
        The resolved settings
    """
    if load_env_file and environ is None:
        load_dotenv(find_dotenv(usecwd=True))
    config_path = Path(path) if path is not None else find_config_file()
    data = load_config_file(config_path) if config_path is not None else {}
    settings = ObservabilitySettings.from_dict(data)
    return settings.apply_env(os.environ if environ is None else environ)
