"""Tests for pairing session input validation."""

import pytest

from ctrlw.errors import ValidationError
from ctrlw.sessions.validation import (
    validate_connection_id,
    validate_device_label,
    validate_minutes,
    validate_pairing_code,
)


class TestPairingCode:
    @pytest.mark.parametrize("code", ["000000", "123456", "999999"])
    def test_valid(self, code):
        assert validate_pairing_code(code) == code

    @pytest.mark.parametrize(
        "code", ["", "12345", "1234567", "12a456", " 123456", "１２３４５６", None, 123456]
    )
    def test_invalid(self, code):
        with pytest.raises(ValidationError):
            validate_pairing_code(code)

    def test_trailing_newline_rejected(self):
        with pytest.raises(ValidationError):
            validate_pairing_code("123456\n")


class TestConnectionId:
    def test_valid(self):
        assert validate_connection_id("socket-abc") == "socket-abc"

    @pytest.mark.parametrize("value", ["", "   ", None, "x" * 129])
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            validate_connection_id(value)


class TestDeviceLabel:
    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_defaults_to_unknown(self, value):
        assert validate_device_label(value) == "Unknown"

    def test_strips_and_truncates(self):
        assert validate_device_label("  Pixel 8 ") == "Pixel 8"
        assert len(validate_device_label("x" * 500)) == 100


class TestMinutes:
    def test_valid(self):
        assert validate_minutes(15) == 15.0
        assert validate_minutes(0.5) == 0.5

    @pytest.mark.parametrize(
        "value", [0, -1, True, "10", None, float("nan"), float("inf"), float("-inf")]
    )
    def test_invalid(self, value):
        with pytest.raises(ValidationError):
            validate_minutes(value)
