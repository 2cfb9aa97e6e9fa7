"""Tests for crypto helpers."""

import pytest

from ctrlw.crypto import (
    KEY_LENGTH,
    b64url_decode,
    b64url_encode,
    compute_hmac,
    constant_time_equals,
    derive_key,
    generate_secret,
    verify_hmac,
)


class TestGenerateSecret:
    def test_length_and_randomness(self):
        assert len(generate_secret()) == KEY_LENGTH
        assert generate_secret() != generate_secret()


class TestDeriveKey:
    def test_deterministic(self):
        assert derive_key("secret", "ctrlw-access") == derive_key(b"secret", "ctrlw-access")

    def test_purpose_separates_keys(self):
        assert derive_key("secret", "ctrlw-access") != derive_key("secret", "ctrlw-refresh")

    def test_fixed_length(self):
        assert len(derive_key("x", "p")) == KEY_LENGTH
        assert len(derive_key("x" * 500, "p")) == KEY_LENGTH

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            derive_key("", "p")


class TestHmac:
    def test_verify(self):
        key = generate_secret()
        tag = compute_hmac(key, b"data")
        assert len(tag) == 32
        assert verify_hmac(key, b"data", tag)
        assert not verify_hmac(key, b"other", tag)
        assert not verify_hmac(generate_secret(), b"data", tag)


class TestConstantTimeEquals:
    def test_compare(self):
        assert constant_time_equals("abc", "abc")
        assert not constant_time_equals("abc", "abd")
        assert not constant_time_equals(None, "abc")
        assert not constant_time_equals("abc", None)


class TestBase64Url:
    def test_unpadded_url_safe(self):
        encoded = b64url_encode(b"\xfb\xff")
        assert "=" not in encoded
        assert "+" not in encoded and "/" not in encoded
        assert b64url_decode(encoded) == b"\xfb\xff"

    def test_invalid_input(self):
        with pytest.raises(ValueError):
            b64url_decode("a")
