"""Unit tests for phone normalization and matching."""

from __future__ import annotations

import pytest

from candidate_dedup.services.phone import (
    format_phone_for_display,
    normalize_phone,
    phones_match,
)


class TestNormalizePhone:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("987654321", "987654321"),
            ("+51 987 654 321", "987654321"),
            ("51987654321", "987654321"),
            ("0987654321", "987654321"),
            ("987-654-321", "987654321"),
            ("(01) 234-5678", "012345678"),
            ("12345", "12345"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "abc"])
    def test_empty_input(self, raw: str | None) -> None:
        assert normalize_phone(raw) == ""

    @pytest.mark.parametrize(
        "raw",
        ["+51 987 654 321", "0987654321", "51012345678", "12345", "510987654321"],
    )
    def test_idempotent(self, raw: str) -> None:
        once = normalize_phone(raw)
        assert normalize_phone(once) == once


class TestPhonesMatch:
    def test_same_number_different_formats(self) -> None:
        assert phones_match("+51 987654321", "987 654 321") is True

    def test_different_numbers(self) -> None:
        assert phones_match("987654321", "987654322") is False

    def test_short_numbers_never_match(self) -> None:
        """Given fewer than 9 digits, equal values still do not match."""
        assert phones_match("12345", "12345") is False

    def test_empty_never_matches(self) -> None:
        assert phones_match("", "") is False
        assert phones_match(None, "987654321") is False


class TestFormatPhoneForDisplay:
    def test_national_number(self) -> None:
        assert format_phone_for_display("987654321") == "+51 987 654 321"

    def test_prefixed_number(self) -> None:
        assert format_phone_for_display("+51987654321") == "+51 987 654 321"

    def test_other_values_unchanged(self) -> None:
        assert format_phone_for_display("12345") == "12345"
        assert format_phone_for_display(None) == ""
