# ============================================================================
# tests/unit/test_normalizers.py
# ============================================================================
"""
Unit tests for value normalizers
"""

import pytest

from document_intake.extractors.normalizers import (
    normalize_date,
    normalize_phone,
    normalize_gender,
    capitalize_name,
    collapse_whitespace,
    lowercase,
)


class TestNormalizeDate:

    @pytest.mark.parametrize("raw,expected", [
        ("1985-03-07", "1985-03-07"),
        ("1985/3/7", "1985-03-07"),
        ("13/05/2020", "2020-05-13"),     # first part > 12 -> day first
        ("05/13/2020", "2020-05-13"),     # second part > 12 -> month first
        ("05/06/2020", "2020-05-06"),     # ambiguous -> US order
        ("5-6-2020", "2020-05-06"),
    ])
    def test_formats(self, raw, expected):
        assert normalize_date(raw) == expected

    def test_two_digit_year_pivot(self):
        assert normalize_date("5/6/85") == "1985-05-06"
        assert normalize_date("5/6/29") == "2029-05-06"
        assert normalize_date("5/6/30") == "1930-05-06"

    @pytest.mark.parametrize("raw", [
        "not a date",
        "13/13/2020",
        "2020-13-01",
        "05/15",
        "aa/bb/cccc",
        "05/15/1850",
    ])
    def test_unparseable_returned_unchanged(self, raw):
        assert normalize_date(raw) == raw

    def test_empty(self):
        assert normalize_date("") == ""
        assert normalize_date(None) is None

    def test_idempotent(self):
        for raw in ("13/05/2020", "05/13/2020", "5/6/85", "1985/3/7"):
            once = normalize_date(raw)
            assert normalize_date(once) == once


class TestNormalizePhone:

    @pytest.mark.parametrize("raw", [
        "555-123-4567",
        "555.123.4567",
        "(555) 123-4567",
        "5551234567",
        "555 123 4567",
    ])
    def test_ten_digits(self, raw):
        assert normalize_phone(raw) == "(555) 123-4567"

    def test_other_lengths_unchanged(self):
        assert normalize_phone("123-4567") == "123-4567"
        assert normalize_phone("+1 555 123 4567") == "+1 555 123 4567"

    def test_idempotent(self):
        once = normalize_phone("555.123.4567")
        assert normalize_phone(once) == once


class TestNormalizeGender:

    @pytest.mark.parametrize("raw,expected", [
        ("M", "male"),
        ("male", "male"),
        (" Male ", "male"),
        ("f", "female"),
        ("FEMALE", "female"),
    ])
    def test_known(self, raw, expected):
        assert normalize_gender(raw) == expected

    def test_passthrough(self):
        assert normalize_gender("non-binary") == "non-binary"
        assert normalize_gender("Other") == "Other"


def test_capitalize_name():
    assert capitalize_name("SMITH") == "Smith"
    assert capitalize_name("smith") == "Smith"
    assert capitalize_name("sMITH") == "Smith"
    assert capitalize_name("  jane ") == "Jane"
    assert capitalize_name("") == ""


def test_collapse_whitespace():
    assert collapse_whitespace("Persistent headaches\n  with   aura ") == "Persistent headaches with aura"


def test_lowercase():
    assert lowercase(" Jane.Doe@Example.COM ") == "jane.doe@example.com"
