import pytest
import json
import os
import sys
from datetime import date

# Update sys.path to include the project root
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from bindays.collectors.salford_city_council import (SalfordCityCouncil, ADDRESS_SEARCH_URL, COLLECTIONS_ICS_URL,
                                                     BIN_TYPES)
from bindays.data_models import Address, BinDay, InteractionResponse
from bindays.errors import ParseError

BLACK, PINK, BLUE, BROWN = BIN_TYPES
POSTCODE = "M50 1AB"
ADDRESS = Address(postcode=POSTCODE, uid="100011434567", property="1 Test Lane")

MOCK_ADDRESSES_JSON = json.dumps({"addresses": [
    {"address": "1 Test Lane, Salford ", "uprn": 100011434567},
    {"address": "2 Test Lane, Salford", "uprn": "100011434568"},
]})

MOCK_ICS = "\r\n".join([
    "BEGIN:VCALENDAR",
    "VERSION:2.0",
    "PRODID:-//Salford City Council//Bins//EN",
    "BEGIN:VEVENT",
    "UID:1",
    "SUMMARY:Black bin",
    "DTSTART;VALUE=DATE:20250602",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:2",
    "SUMMARY:Blue bin",
    "DTSTART:20250602T070000",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:3",
    "SUMMARY:Pink lidded bin",
    "DTSTART;VALUE=DATE:20250526",
    "END:VEVENT",
    "BEGIN:VEVENT",
    "UID:4",
    "SUMMARY:Christmas tree",
    "DTSTART;VALUE=DATE:20250609",
    "END:VEVENT",
    "END:VCALENDAR",
    "",
])


def test_get_addresses_posts_postcode():
    request = SalfordCityCouncil().get_addresses(POSTCODE, None).next_request
    assert request.step_id == 1
    assert request.method == "POST"
    assert request.url == ADDRESS_SEARCH_URL
    assert request.body == "QueryStr=M50+1AB"


def test_get_addresses_parses_json():
    result = SalfordCityCouncil().get_addresses(POSTCODE, InteractionResponse(step_id=1, content=MOCK_ADDRESSES_JSON))
    assert result.addresses == (
        Address(property="1 Test Lane, Salford", postcode=POSTCODE, uid="100011434567"),
        Address(property="2 Test Lane, Salford", postcode=POSTCODE, uid="100011434568"),
    )


@pytest.mark.parametrize("content", ["<html>oops</html>", '{"results": []}', '{"addresses": [{"uprn": 1}]}'])
def test_get_addresses_unexpected_json_raises(content):
    with pytest.raises(ParseError):
        SalfordCityCouncil().get_addresses(POSTCODE, InteractionResponse(step_id=1, content=content))


def test_get_bin_days_requests_calendar_for_uprn():
    request = SalfordCityCouncil().get_bin_days(ADDRESS, None).next_request
    assert request.url == f"{COLLECTIONS_ICS_URL}?UPRN=100011434567"


def test_get_bin_days_parses_calendar():
    result = SalfordCityCouncil().get_bin_days(ADDRESS, InteractionResponse(step_id=1, content=MOCK_ICS))
    assert result.bin_days == (
        BinDay(date(2025, 5, 26), ADDRESS, (PINK,)),
        BinDay(date(2025, 6, 2), ADDRESS, (BLACK, BLUE)),
    )


def test_get_bin_days_not_a_calendar_raises():
    with pytest.raises(ParseError):
        SalfordCityCouncil().get_bin_days(ADDRESS, InteractionResponse(step_id=1, content="<html>Error</html>"))
