"""Unit tests for core.exceptions."""

import pytest

from envoi.core.exceptions import (
    CacheStoreError,
    ChainLookupError,
    ChainTimeoutError,
    ConfigurationError,
    DatabaseError,
    EnvoiError,
    MalformedInputError,
)


class TestHierarchy:
    @pytest.mark.parametrize(
        "exc",
        [ConfigurationError, DatabaseError, CacheStoreError, ChainLookupError, ChainTimeoutError],
    )
    def test_rooted_at_envoi_error(self, exc: type[Exception]) -> None:
        assert issubclass(exc, EnvoiError)

    def test_cache_store_is_database_error(self) -> None:
        assert issubclass(CacheStoreError, DatabaseError)

    def test_timeout_is_lookup_error(self) -> None:
        assert issubclass(ChainTimeoutError, ChainLookupError)

    def test_input_error_not_a_lookup_error(self) -> None:
        assert not issubclass(MalformedInputError, ChainLookupError)


class TestMalformedInputError:
    def test_key(self) -> None:
        err = MalformedInputError("malformed name", key="bad name")
        assert str(err) == "malformed name"
        assert err.key == "bad name"

    def test_key_defaults_to_none(self) -> None:
        assert MalformedInputError("x").key is None
