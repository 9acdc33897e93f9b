"""Namehash derivation for forward and reverse lookups.

A name's digest is computed by folding its labels from the root down::

    node = 32 * b"\\x00"
    for label in reversed(name.split(".")):
        if label:
            node = sha256(node + label_digest(label))

``label_digest`` hashes the UTF-8 bytes of an ordinary label, or the
decoded 32-byte public key of a label that is shaped like an address.
The derivation must stay bit-identical to the on-chain registry, which
indexes its records by these exact digests.

Reverse lookups address a resolver storage slot keyed by::

    b"names_" + (0).to_bytes(8, "big") + namehash(f"{address}.addr.reverse")

Examples:
    ```python
    from envoi.utils.namehash import namehash, reverse_key

    namehash("")                # 32 zero bytes
    namehash("alice.voi").hex()
    len(reverse_key(address))   # 46
    ```
"""

from __future__ import annotations

import hashlib
from typing import Final

from envoi.models.address import decode_address, is_address
from envoi.models.name import split_labels


DIGEST_LENGTH: Final[int] = 32
EMPTY_DIGEST: Final[bytes] = bytes(DIGEST_LENGTH)

REVERSE_SUFFIX: Final[str] = "addr.reverse"
REVERSE_KEY_PREFIX: Final[bytes] = b"names_"
REVERSE_KEY_VERSION: Final[int] = 0
REVERSE_KEY_LENGTH: Final[int] = len(REVERSE_KEY_PREFIX) + 8 + DIGEST_LENGTH


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def label_digest(label: str) -> bytes:
    """Hash a single label.

    Address-shaped labels hash their decoded public key. If decoding fails
    (for instance a bad checksum) the label is hashed as plain text instead.
    """
    if is_address(label):
        try:
            return _sha256(decode_address(label))
        except ValueError:
            pass
    return _sha256(label.encode("utf-8"))


def namehash(name: str) -> bytes:
    """Return the 32-byte digest of *name*.

    The empty name maps to 32 zero bytes. Empty labels (from leading,
    trailing or doubled dots) are skipped.
    """
    node = EMPTY_DIGEST
    if not name:
        return node

    for label in reversed(split_labels(name)):
        if label:
            node = _sha256(node + label_digest(label))
    return node


def reverse_name(address: str) -> str:
    """Return the pseudo-name ``<address>.addr.reverse``."""
    return f"{address}.{REVERSE_SUFFIX}"


def reverse_key(address: str) -> bytes:
    """Return the 46-byte resolver storage key for an address."""
    return (
        REVERSE_KEY_PREFIX
        + REVERSE_KEY_VERSION.to_bytes(8, "big")
        + namehash(reverse_name(address))
    )


def digest_to_int(digest: bytes) -> int:
    """Interpret *digest* as an unsigned big-endian integer (ARC-72 token id)."""
    return int.from_bytes(digest, "big")
