"""Baggage fields propagated alongside trace context."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

DEFAULT_BAGGAGE_FIELDS: tuple[str, ...] = ("X-Transaction-Id",)


@dataclass(frozen=True, slots=True)
class BaggageConfiguration:
    """Immutable list of baggage field names, header-style (case-insensitive)."""

    fields: tuple[str, ...] = DEFAULT_BAGGAGE_FIELDS

    @classmethod
    def of(cls, fields: Iterable[str] | None) -> BaggageConfiguration:
        if fields is None:
            return cls(())
        cleaned: list[str] = []
        for f in fields:
            if not isinstance(f, str) or not f.strip():
                raise ValueError(f"Invalid baggage field: {f!r}")
            if f.strip().lower() not in (c.lower() for c in cleaned):
                cleaned.append(f.strip())
        return cls(tuple(cleaned))

    def is_propagated(self, name: str) -> bool:
        return name.lower() in (f.lower() for f in self.fields)
