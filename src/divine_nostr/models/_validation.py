"""Shared validation helpers for frozen dataclass models.

Private module, not part of the public API. Used by ``__post_init__``
methods in sibling model modules to enforce runtime type constraints,
hex encodings, and null-byte safety.
"""

from __future__ import annotations

import re
from typing import Any


_HEX64 = re.compile(r"^[0-9a-f]{64}$")
_HEX128 = re.compile(r"^[0-9a-f]{128}$")

MAX_KIND: int = 65535


def validate_instance(value: Any, expected: type, name: str) -> None:
    """Raise ``TypeError`` if *value* is not an instance of *expected*."""
    if not isinstance(value, expected):
        article = "an" if expected.__name__[0] in "AEIOUaeiou" else "a"
        raise TypeError(f"{name} must be {article} {expected.__name__}, got {type(value).__name__}")


def validate_timestamp(value: Any, name: str) -> None:
    """Raise if *value* is not a non-negative ``int`` (``bool`` excluded)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")


def validate_kind(value: Any, name: str = "kind") -> None:
    """Raise if *value* is not an event kind in ``0..65535``."""
    validate_timestamp(value, name)
    if value > MAX_KIND:
        raise ValueError(f"{name} must be <= {MAX_KIND}, got {value}")


def validate_str_no_null(value: Any, name: str) -> None:
    """Raise if *value* is not a ``str`` or contains null bytes."""
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a str, got {type(value).__name__}")
    if "\x00" in value:
        raise ValueError(f"{name} contains null bytes")


def validate_str_not_empty(value: Any, name: str) -> None:
    """Raise if *value* is not a non-empty ``str`` without null bytes."""
    validate_str_no_null(value, name)
    if not value:
        raise ValueError(f"{name} must not be empty")


def validate_hex64(value: Any, name: str) -> None:
    """Raise if *value* is not a 32-byte lowercase hex string (ids, pubkeys)."""
    validate_str_no_null(value, name)
    if not _HEX64.match(value):
        raise ValueError(f"{name} must be 64 lowercase hex characters, got {value!r}")


def validate_signature(value: Any, name: str = "sig") -> None:
    """Raise if *value* is neither ``None`` nor a 64-byte lowercase hex string."""
    if value is None:
        return
    validate_str_no_null(value, name)
    if not _HEX128.match(value):
        raise ValueError(f"{name} must be 128 lowercase hex characters")


def normalize_tags(value: Any, name: str = "tags") -> tuple[tuple[str, ...], ...]:
    """Convert a sequence of string sequences into a tuple of tuples.

    Raises:
        TypeError: If *value* or any tag is not a list/tuple, or any
            element is not a ``str``.
        ValueError: If any element contains null bytes.
    """
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"{name} must be a list of lists, got {type(value).__name__}")
    result: list[tuple[str, ...]] = []
    for i, tag in enumerate(value):
        if not isinstance(tag, (list, tuple)):
            raise TypeError(f"{name}[{i}] must be a list, got {type(tag).__name__}")
        for item in tag:
            validate_str_no_null(item, f"{name}[{i}]")
        result.append(tuple(tag))
    return tuple(result)
