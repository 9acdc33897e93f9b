"""Dotted name helpers.

A name is a ``.``-separated sequence of non-empty labels such as
``alice.voi``. Labels may themselves be addresses (reverse pseudo-names
look like ``<address>.addr.reverse``). Names are case-insensitive for
storage purposes and are always lowercased before they reach a cache
table.
"""

from __future__ import annotations

from typing import Final


MAX_NAME_LENGTH: Final[int] = 255


def split_labels(name: str) -> list[str]:
    """Split *name* into its labels, leaf first."""
    return name.split(".")


def is_valid_name(value: object) -> bool:
    """Return True if *value* is a structurally well-formed name.

    A well-formed name is a non-empty ``str`` of at most 255 characters,
    free of whitespace and control characters, with no empty labels.
    """
    if not isinstance(value, str) or not value or len(value) > MAX_NAME_LENGTH:
        return False
    if any(ch.isspace() or not ch.isprintable() for ch in value):
        return False
    return all(split_labels(value))


def normalize_name(name: str) -> str:
    """Return the storage form of *name* (lowercase)."""
    return name.lower()


def has_tld(name: str, tld: str) -> bool:
    """Return True if the last label of *name* equals *tld* (case-insensitive)."""
    return normalize_name(name).endswith(f".{tld.lower()}")
