"""Unit tests for models.address."""

import pytest
from algosdk import encoding

from envoi.models.address import (
    ZERO_ADDRESS,
    decode_address,
    encode_address,
    is_address,
)


REWARDS_POOL = "737777777777777777777777777777777777777777777777777UFEJ2CI"


class TestIsAddress:
    def test_zero_address(self) -> None:
        assert is_address(ZERO_ADDRESS)

    def test_shape_only(self) -> None:
        # Right length and alphabet, checksum not verified at this layer
        assert is_address("A" * 58)

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "A" * 57,
            "A" * 59,
            "a" * 58,
            "1" * 58,
            "A" * 57 + "=",
            ZERO_ADDRESS + "\n",
            None,
            58,
            b"A" * 58,
        ],
    )
    def test_rejects(self, value: object) -> None:
        assert not is_address(value)


class TestDecodeAddress:
    def test_zero_address_is_zero_key(self) -> None:
        assert decode_address(ZERO_ADDRESS) == bytes(32)

    def test_well_known_address(self) -> None:
        key = decode_address(REWARDS_POOL)
        assert len(key) == 32
        assert encode_address(key) == REWARDS_POOL

    def test_checksum_mismatch(self) -> None:
        tampered = "B" + ZERO_ADDRESS[1:]
        with pytest.raises(ValueError, match="checksum"):
            decode_address(tampered)

    def test_not_address_shaped(self) -> None:
        with pytest.raises(ValueError, match="not an address"):
            decode_address("alice.voi")


class TestEncodeAddress:
    def test_length(self) -> None:
        assert len(encode_address(bytes(range(32)))) == 58

    def test_decode_inverts_encode(self) -> None:
        key = bytes(range(32))
        assert decode_address(encode_address(key)) == key

    @pytest.mark.parametrize("size", [0, 31, 33])
    def test_wrong_key_size(self, size: int) -> None:
        with pytest.raises(ValueError, match="32 bytes"):
            encode_address(bytes(size))


class TestAgreesWithAlgosdk:
    @pytest.mark.parametrize("key", [bytes(32), bytes(range(32)), b"\xff" * 32])
    def test_same_encoding(self, key: bytes) -> None:
        address = encode_address(key)
        assert encoding.is_valid_address(address)
        assert encoding.decode_address(address) == key

    def test_tampered_address_rejected_by_both(self) -> None:
        tampered = "B" + ZERO_ADDRESS[1:]
        assert not encoding.is_valid_address(tampered)
        with pytest.raises(ValueError):
            decode_address(tampered)
