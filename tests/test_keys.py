"""
tests/test_keys.py
------------------
Unit tests for entities/keys.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import hashlib

import pytest

from entities.keys import (
    NO_KEY,
    CompositeKey,
    DerivedKey,
    NaturalKey,
    key_from_token,
    source_key,
)


class TestSourceKeyCoercion:
    def test_int_and_digit_string_are_the_same_key(self) -> None:
        assert source_key(7) == source_key("7") == NaturalKey(7)

    def test_surrounding_whitespace_ignored(self) -> None:
        assert source_key(" 42 ") == NaturalKey(42)

    def test_negative_digit_string(self) -> None:
        assert source_key("-3") == NaturalKey(-3)

    def test_non_numeric_string_kept_as_text(self) -> None:
        assert source_key("abc-1") == NaturalKey("abc-1")

    def test_empty_values_have_no_key(self) -> None:
        assert source_key(None) is None
        assert source_key("") is None
        assert source_key("   ") is None

    def test_tuple_becomes_composite(self) -> None:
        key = source_key((55, 0))
        assert key == CompositeKey(("55", "0"))
        assert str(key) == "55-0"

    def test_existing_key_passes_through(self) -> None:
        key = DerivedKey("abc")
        assert source_key(key) is key

    @pytest.mark.parametrize("bad", [True, 1.5, {"a": 1}, []])
    def test_invalid_values_rejected(self, bad) -> None:
        with pytest.raises(TypeError):
            source_key(bad)


class TestAnonymousKey:
    def test_zero_is_anonymous(self) -> None:
        assert source_key(0).is_anonymous
        assert source_key("0").is_anonymous
        assert NO_KEY.is_anonymous

    def test_other_keys_are_not(self) -> None:
        assert not NaturalKey(1).is_anonymous
        assert not CompositeKey(("0",)).is_anonymous
        assert not DerivedKey.of(0).is_anonymous


class TestTokens:
    def test_variants_never_collide(self) -> None:
        natural = source_key("55-0")
        composite = source_key(("55", "0"))
        assert natural.token != composite.token

    @pytest.mark.parametrize(
        "key",
        [NaturalKey(12), NaturalKey("slug"), CompositeKey(("3", "a")), DerivedKey("ff00")],
    )
    def test_token_parses_back(self, key) -> None:
        assert key_from_token(key.token) == key

    def test_unknown_token_kind(self) -> None:
        with pytest.raises(ValueError):
            key_from_token("x:1")


class TestDerivedKey:
    def test_sha1_over_joined_parts(self) -> None:
        expected = hashlib.sha1(b"12-3,9").hexdigest()
        assert DerivedKey.of(12, "3,9").digest == expected

    def test_deterministic(self) -> None:
        assert DerivedKey.of("a", "b") == DerivedKey.of("a", "b")
        assert DerivedKey.of("a", "b") != DerivedKey.of("b", "a")
