"""
Metric naming conventions.

Every metric follows `firefly.{module}.{metric}`.
"""

from __future__ import annotations

import re

_MODULE_PATTERN = re.compile(r"[a-z][a-z0-9]*")
_PROMETHEUS_ILLEGAL = re.compile(r"[^a-zA-Z0-9_:]")


class MetricNaming:
    """Static helpers enforcing the metric naming convention."""

    FIREFLY_PREFIX = "firefly"

    @staticmethod
    def prefix(module: str | None) -> str:
        """
        Return `firefly.{module}`.

        Raises:
            ValueError: If module is not lowercase alphanumeric starting with a letter
        """
        if not isinstance(module, str) or not _MODULE_PATTERN.fullmatch(module):
            raise ValueError(
                f"Module must be lowercase alphanumeric starting with a letter: {module!r}"
            )
        return f"{MetricNaming.FIREFLY_PREFIX}.{module}"

    @staticmethod
    def name(prefix: str, metric: str | None) -> str:
        """
        Return the fully qualified `{prefix}.{metric}` name.

        Raises:
            ValueError: If metric is blank
        """
        if not isinstance(metric, str) or not metric.strip():
            raise ValueError("Metric name must not be blank")
        return f"{prefix}.{metric}"

    @staticmethod
    def to_prometheus(name: str) -> str:
        """`firefly.cqrs.command.processed` -> `firefly_cqrs_command_processed`."""
        converted = _PROMETHEUS_ILLEGAL.sub("_", name)
        if converted[:1].isdigit():
            converted = f"_{converted}"
        return converted
