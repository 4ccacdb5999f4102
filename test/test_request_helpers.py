import pytest
import os
import sys
from datetime import date, timedelta

# Add project root to sys.path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from bindays.request_helpers import (form_encode, parse_set_cookie_for_request_cookie, merge_cookies,
                                     format_postcode, validate_postcode, parse_date_inferring_year)
from bindays.errors import InvalidPostcodeError, ParseError


# --- form_encode ---

def test_form_encode_keeps_order_and_uses_plus_for_spaces():
    encoded = form_encode({"b": "two words", "a": "x&y=z"})
    assert encoded == "b=two+words&a=x%26y%3Dz"


def test_form_encode_empty():
    assert form_encode({}) == ""
    assert form_encode(None) == ""


# --- parse_set_cookie_for_request_cookie ---

def test_parse_set_cookie_drops_attributes():
    header = "ASP.NET_SessionId=abc123; path=/; HttpOnly; SameSite=Lax"
    assert parse_set_cookie_for_request_cookie(header) == "ASP.NET_SessionId=abc123"


def test_parse_set_cookie_handles_cookies_joined_in_one_value():
    header = ("session=one; Path=/; Secure, "
              "token=two; Expires=Wed, 21 Oct 2026 07:28:00 GMT; HttpOnly, "
              "lang=en-GB")
    assert parse_set_cookie_for_request_cookie(header) == "session=one; token=two; lang=en-GB"


def test_parse_set_cookie_accepts_a_list_of_values():
    values = ["a=1; Path=/", "b=2; Max-Age=60"]
    assert parse_set_cookie_for_request_cookie(values) == "a=1; b=2"


def test_parse_set_cookie_empty():
    assert parse_set_cookie_for_request_cookie(None) == ""
    assert parse_set_cookie_for_request_cookie("") == ""
    assert parse_set_cookie_for_request_cookie([]) == ""


def test_merge_cookies_later_value_wins():
    assert merge_cookies("a=1; b=2", None, "b=3; c=4") == "a=1; b=3; c=4"


def test_merge_cookies_nothing_to_merge():
    assert merge_cookies(None, "") == ""


# --- format_postcode / validate_postcode ---

@pytest.mark.parametrize("raw, expected", [
    ("sw1a 1aa", "SW1A 1AA"),
    ("SW1A1AA", "SW1A 1AA"),
    ("  ne8   1hh ", "NE8 1HH"),
    ("m50 1ab", "M50 1AB"),
    ("iv301xx", "IV30 1XX"),
    ("1ab", "1AB"),
    ("", ""),
])
def test_format_postcode(raw, expected):
    assert format_postcode(raw) == expected


@pytest.mark.parametrize("raw", ["sw1a 1aa", "NE81HH", " m5  0 1ab ", "ab", "x", "", "ab12 3cd e"])
def test_format_postcode_is_idempotent(raw):
    once = format_postcode(raw)
    assert format_postcode(once) == once


def test_validate_postcode_returns_formatted():
    assert validate_postcode("ne8 1hh") == "NE8 1HH"


@pytest.mark.parametrize("raw", ["", "NOT A POSTCODE", "12345", "SW1A 1A"])
def test_validate_postcode_rejects_invalid(raw):
    with pytest.raises(InvalidPostcodeError):
        validate_postcode(raw)


# --- parse_date_inferring_year ---

def test_parse_date_rolls_past_date_into_next_year():
    assert parse_date_inferring_year("20 January", "%d %B", today=date(2025, 3, 1)) == date(2026, 1, 20)


def test_parse_date_keeps_current_year_for_upcoming_date():
    assert parse_date_inferring_year("20 January", "%d %B", today=date(2025, 1, 1)) == date(2025, 1, 20)


def test_parse_date_within_tolerance_keeps_current_year():
    assert parse_date_inferring_year("25 February", "%d %B", today=date(2025, 3, 1)) == date(2025, 2, 25)


def test_parse_date_custom_tolerance():
    result = parse_date_inferring_year("25 February", "%d %B", today=date(2025, 3, 1), tolerance=timedelta(0))
    assert result == date(2026, 2, 25)


def test_parse_date_weekday_selects_year():
    # 29 December is a Monday in 2025, and shows up on a page viewed in early January 2026
    assert parse_date_inferring_year("Monday 29 December", "%A %d %B", today=date(2026, 1, 5)) == date(2025, 12, 29)


def test_parse_date_weekday_matching_current_year():
    assert parse_date_inferring_year("Thursday 10 April", "%A %d %B", today=date(2025, 4, 1)) == date(2025, 4, 10)


def test_parse_date_collapses_whitespace():
    assert parse_date_inferring_year("  20   January ", "%d %B", today=date(2025, 1, 1)) == date(2025, 1, 20)


def test_parse_date_uses_local_today_by_default(mocker):
    mocker.patch('bindays.request_helpers.local_today', return_value=date(2025, 3, 1))
    assert parse_date_inferring_year("20 January", "%d %B") == date(2026, 1, 20)


def test_parse_date_unparseable_raises_parse_error():
    with pytest.raises(ParseError):
        parse_date_inferring_year("Someday soon", "%d %B", today=date(2025, 1, 1))


def test_parse_date_rejects_format_with_year():
    with pytest.raises(ValueError):
        parse_date_inferring_year("20 January 2025", "%d %B %Y", today=date(2025, 1, 1))
