"""
KeyValues - Immutable tag sets attached to spans.

Spans carry two disjoint tag sets:

- low cardinality: bounded vocabulary, safe to group and aggregate by
- high cardinality: unbounded vocabulary (ids), per-trace detail only

Both are represented by the same immutable type.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Union


class InvalidKeyValueError(ValueError):
    """Raised when a tag key or value is malformed."""


TagInput = Union["KeyValues", Mapping[str, object], Iterable[tuple[str, object]], None]


def _normalize_value(key: str, value: object) -> str:
    if value is None:
        raise InvalidKeyValueError(f"Tag '{key}' has no value")
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, int | float):
        return str(value)
    raise InvalidKeyValueError(
        f"Tag '{key}' value must be a string or number, got {type(value).__name__}"
    )


def _validate_key(key: object) -> str:
    if not isinstance(key, str) or not key or key != key.strip():
        raise InvalidKeyValueError(f"Invalid tag key: {key!r}")
    return key


@dataclass(frozen=True, slots=True)
class KeyValues:
    """
    An immutable set of string tags with unique keys.

    Example:
        ```python
        low = KeyValues.of({"command.type": "CreateOrder"})
        high = KeyValues.of(order_id="o-123")
        both = low.and_(high)
        ```
    """

    pairs: tuple[tuple[str, str], ...] = ()

    @classmethod
    def empty(cls) -> KeyValues:
        """Return the empty tag set."""
        return _EMPTY

    @classmethod
    def of(
        cls,
        tags: Mapping[str, object] | Iterable[tuple[str, object]] | None = None,
        **kwargs: object,
    ) -> KeyValues:
        """
        Build a tag set from a mapping, pairs, or keyword arguments.

        Later keys override earlier ones.

        Raises:
            InvalidKeyValueError: If any key or value is malformed
        """
        merged: dict[str, str] = {}
        if tags is not None:
            items = tags.items() if isinstance(tags, Mapping) else tags
            for item in items:
                try:
                    key, value = item
                except (TypeError, ValueError):
                    raise InvalidKeyValueError(
                        f"Expected a (key, value) pair, got {item!r}"
                    ) from None
                merged[_validate_key(key)] = _normalize_value(key, value)
        for key, value in kwargs.items():
            merged[_validate_key(key)] = _normalize_value(key, value)
        if not merged:
            return _EMPTY
        return cls(tuple(merged.items()))

    @classmethod
    def coerce(cls, tags: TagInput) -> KeyValues:
        """Accept anything `of` accepts, returning KeyValues unchanged."""
        if isinstance(tags, KeyValues):
            return tags
        return cls.of(tags)

    def and_(self, other: TagInput) -> KeyValues:
        """Return a new set with `other` merged over this one."""
        other = KeyValues.coerce(other)
        if not other:
            return self
        if not self:
            return other
        return KeyValues.of(self.pairs + other.pairs)

    def get(self, key: str, default: str | None = None) -> str | None:
        for k, v in self.pairs:
            if k == key:
                return v
        return default

    def as_dict(self) -> dict[str, str]:
        return dict(self.pairs)

    def keys(self) -> tuple[str, ...]:
        return tuple(k for k, _ in self.pairs)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self.pairs)

    def __getitem__(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise KeyError(key)
        return value


_EMPTY = KeyValues()
