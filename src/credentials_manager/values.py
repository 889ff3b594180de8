"""Credential value types.

A credential is one of three shapes:

- ``Empty`` -- no credential. Never stored in the cache.
- ``Text`` -- an opaque secret string (a token, a password).
- ``Structured`` -- a flat mapping of named scalar fields (e.g. an OAuth
  token bundle), persisted through the JSON codec.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Union

Scalar = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Empty:
    """The absence of a credential."""

    def __bool__(self) -> bool:
        return False


@dataclass(frozen=True)
class Text:
    """An opaque text credential."""

    text: str

    def __repr__(self) -> str:
        return f"Text(<{len(self.text)} chars>)"


@dataclass(frozen=True)
class Structured:
    """A credential made of named scalar fields."""

    fields: dict[str, Scalar] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Detach from the caller's mapping so later mutation cannot leak into the cache
        object.__setattr__(self, "fields", dict(self.fields))

    def __getitem__(self, name: str) -> Scalar:
        return self.fields[name]

    def get(self, name: str, default: Scalar = None) -> Scalar:
        return self.fields.get(name, default)

    def __repr__(self) -> str:
        return f"Structured(fields={sorted(self.fields)})"


CredentialValue = Union[Empty, Text, Structured]

EMPTY = Empty()


def as_value(value: Any) -> CredentialValue:
    """Coerce a plain Python value into a ``CredentialValue``.

    ``None`` becomes ``Empty``, ``str`` becomes ``Text`` and any mapping
    becomes ``Structured``. Values that are already credential values are
    returned unchanged.
    """
    if value is None:
        return EMPTY
    if isinstance(value, (Empty, Text, Structured)):
        return value
    if isinstance(value, str):
        return Text(value)
    if isinstance(value, Mapping):
        return Structured(dict(value))
    raise TypeError(f"Unsupported credential value type: {type(value).__name__}")


def is_empty(value: CredentialValue) -> bool:
    """Return True for ``Empty``, an empty ``Text`` or a ``Structured`` with no fields."""
    if isinstance(value, Empty):
        return True
    if isinstance(value, Text):
        return value.text == ""
    if isinstance(value, Structured):
        return not value.fields
    raise TypeError(f"Not a credential value: {type(value).__name__}")
