"""Account address helpers.

An address is the 58-character base32 rendering (alphabet ``A-Z2-7``, no
padding) of a 32-byte public key followed by a 4-byte checksum. Encoding
and checksum verification are delegated to ``algosdk.encoding``.

Validity at this layer is structural: [is_address()][envoi.models.address.is_address]
only checks length and alphabet. [decode_address()][envoi.models.address.decode_address]
additionally verifies the checksum and is used wherever the raw public
key is needed (namehash label digests).

Examples:
    ```python
    is_address(ZERO_ADDRESS)             # True
    decode_address(ZERO_ADDRESS)         # b"\\x00" * 32
    encode_address(b"\\x00" * 32)        # ZERO_ADDRESS
    ```
"""

from __future__ import annotations

import re
from typing import Final

from algosdk import constants, encoding, error


ADDRESS_LENGTH: Final[int] = constants.address_len
PUBLIC_KEY_LENGTH: Final[int] = constants.key_len_bytes

_ADDRESS_PATTERN: Final[re.Pattern[str]] = re.compile(rf"^[A-Z2-7]{{{ADDRESS_LENGTH}}}$")


def is_address(value: object) -> bool:
    """Return True if *value* is shaped like an address (58 chars of ``A-Z2-7``)."""
    return isinstance(value, str) and _ADDRESS_PATTERN.fullmatch(value) is not None


def decode_address(address: str) -> bytes:
    """Decode an address into its 32-byte public key.

    Raises:
        ValueError: If the string is not address-shaped or carries a
            checksum that does not match the key.
    """
    if not is_address(address):
        raise ValueError(f"not an address: {address!r}")
    try:
        public_key: bytes = encoding.decode_address(address)
    except error.WrongChecksumError as e:
        raise ValueError(f"address checksum mismatch: {address}") from e
    except (error.WrongKeyLengthError, ValueError) as e:
        raise ValueError(f"address does not decode to a public key: {address}") from e
    return public_key


def encode_address(public_key: bytes) -> str:
    """Encode a 32-byte public key as a checksummed address.

    Raises:
        ValueError: If *public_key* is not exactly 32 bytes.
    """
    if len(public_key) != PUBLIC_KEY_LENGTH:
        raise ValueError(f"public key must be 32 bytes, got {len(public_key)}")
    address: str = encoding.encode_address(public_key)
    return address


ZERO_ADDRESS: Final[str] = encode_address(bytes(PUBLIC_KEY_LENGTH))
