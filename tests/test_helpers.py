from datetime import date

import pytest

from treeofhope.helpers import clean_str, is_uuid, parse_bool, parse_date, slugify_title, to_cents


@pytest.mark.parametrize(
    "title,slug",
    [
        ("Help Sam", "help-sam"),
        ("Help Sam!", "help-sam"),
        ("  Sarah's   Fight  ", "-sarahs-fight-"),
        ("Ünïcode Café", "ünïcode-café"),
        ("under_score - dash", "under_score---dash"),
    ],
)
def test_slugify_title(title, slug):
    assert slugify_title(title) == slug


def test_slugify_truncates_to_fifty_chars():
    assert len(slugify_title("word " * 40)) == 50


def test_is_uuid():
    assert is_uuid("0b8a3a8e-6f7b-4c3e-9a43-2d0c4e8e2b11")
    assert not is_uuid("help-sam")
    assert not is_uuid(None)


def test_clean_str_and_parse_bool():
    assert clean_str("  hi  ") == "hi"
    assert clean_str("abcdef", 3) == "abc"
    assert clean_str(None) == ""
    assert parse_bool("yes") is True
    assert parse_bool("0") is False
    assert parse_bool(None, default=True) is True


def test_parse_date():
    assert parse_date("2026-11-01") == date(2026, 11, 1)
    assert parse_date("2026-11-01T09:30:00Z") == date(2026, 11, 1)
    assert parse_date("") is None
    with pytest.raises(ValueError):
        parse_date("next tuesday")


@pytest.mark.parametrize(
    "raw,cents",
    [
        (19, 1900),
        ("19.99", 1999),
        ("$1,234", 123400),
        ("2.5k", 250000),
        ("1M", 100000000),
        (".5", 50),
    ],
)
def test_to_cents(raw, cents):
    assert to_cents(raw) == cents


@pytest.mark.parametrize("raw", ["", "abc", "-5", None, True, "1,23"])
def test_to_cents_rejects_junk(raw):
    with pytest.raises(ValueError):
        to_cents(raw)
