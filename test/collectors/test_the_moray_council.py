import pytest
import json
import os
import sys
from datetime import date

# Update sys.path to include the project root
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.insert(0, project_root)

from bindays.collectors.the_moray_council import TheMorayCouncil, CalendarState, BASE_URL, BIN_TYPES
from bindays.data_models import Address, BinDay, InteractionResponse
from bindays.errors import ParseError

GENERAL, GARDEN, PAPER, CANS_PLASTICS, GLASS = BIN_TYPES
POSTCODE = "IV30 1AB"
ADDRESS = Address(postcode=POSTCODE, uid="1234", property="1 Test Road")

# --- Mock HTML Data ---
MOCK_ROADS_HTML = """<html><body><ul><li><a href="disp_bins.php?id=1234">1 Test Road,
    ELGIN</a></li><li><a href="disp_bins.php?id=5678">2 Test Road, ELGIN</a></li><li><a href="help.php">Help</a></li></ul></body></html>"""
MOCK_PROPERTY_HTML = """<html><body><a href="cal_2026_view.php?id=1234">2026 calendar</a><a href="https://bindayfinder.moray.gov.uk/cal_2025_view.php?id=1234">2025 calendar</a></body></html>"""
MOCK_CALENDAR_2025_HTML = """<html><body><h1>Collections for 2025</h1>
<div class="month-container"><h2>December</h2><div class="days-container">
<div class="blank"></div><div class="">1</div><div class="B">2</div><div class="GPOC">9</div><div class="GBPOC">30</div>
</div></div></body></html>"""
MOCK_CALENDAR_2026_HTML = """<html><body><h1>Collections for 2026</h1>
<div class="month-container"><h2>January</h2><div class="days-container">
<div class="GPOC">6</div><div class="B">13</div>
</div></div></body></html>"""
MOCK_CALENDAR_UNKNOWN_CLASS_HTML = """<html><body><h1>Collections for 2026</h1>
<div class="month-container"><h2>January</h2><div class="days-container"><div class="ZZZ">6</div></div></div></body></html>"""

ALL_BUT_GARDEN = (GENERAL, PAPER, CANS_PLASTICS, GLASS)
ALL_BINS = (GENERAL, GARDEN, PAPER, CANS_PLASTICS, GLASS)


@pytest.fixture
def today(mocker):
    mocker.patch('bindays.bin_days.local_today', return_value=date(2025, 12, 5))


def calendar_response(html, request):
    return InteractionResponse(step_id=request.step_id, content=html, carried_state=request.carried_state)


def test_get_addresses_request():
    result = TheMorayCouncil().get_addresses("iv301ab", None)
    assert result.next_request.step_id == 1
    assert result.next_request.url == f"{BASE_URL}refuse_roads.php?strname=&pcode=IV30+1AB"


def test_get_addresses_parses_links():
    result = TheMorayCouncil().get_addresses(POSTCODE, InteractionResponse(step_id=1, content=MOCK_ROADS_HTML))
    assert result.addresses == (
        Address(property="1 Test Road, ELGIN", postcode=POSTCODE, uid="1234"),
        Address(property="2 Test Road, ELGIN", postcode=POSTCODE, uid="5678"),
    )


def test_get_bin_days_walks_calendars_oldest_first(today):
    collector = TheMorayCouncil()

    start = collector.get_bin_days(ADDRESS, None)
    assert start.next_request.url == f"{BASE_URL}disp_bins.php?id=1234"

    first = collector.get_bin_days(ADDRESS, InteractionResponse(step_id=1, content=MOCK_PROPERTY_HTML))
    request = first.next_request
    assert request.step_id == 2
    assert request.url == f"{BASE_URL}cal_2025_view.php?id=1234"
    assert CalendarState.from_wire(request.carried_state).pending == (f"{BASE_URL}cal_2026_view.php?id=1234",)

    # Same step id again, with one calendar fewer pending
    second = collector.get_bin_days(ADDRESS, calendar_response(MOCK_CALENDAR_2025_HTML, request))
    request = second.next_request
    assert request.step_id == 2
    assert request.url == f"{BASE_URL}cal_2026_view.php?id=1234"
    state = CalendarState.from_wire(request.carried_state)
    assert state.pending == ()
    assert state.collected == (("2025-12-02", "B"), ("2025-12-09", "GPOC"), ("2025-12-30", "GBPOC"))

    final = collector.get_bin_days(ADDRESS, calendar_response(MOCK_CALENDAR_2026_HTML, request))
    assert final.next_request is None
    # 2 December is before today and is dropped
    assert final.bin_days == (
        BinDay(date(2025, 12, 9), ADDRESS, ALL_BUT_GARDEN),
        BinDay(date(2025, 12, 30), ADDRESS, ALL_BINS),
        BinDay(date(2026, 1, 6), ADDRESS, ALL_BUT_GARDEN),
        BinDay(date(2026, 1, 13), ADDRESS, (GARDEN,)),
    )


def test_carried_state_survives_json_round_trip(today):
    """The carried state is plain strings, so a driver can store it anywhere between steps."""
    collector = TheMorayCouncil()
    request = collector.get_bin_days(ADDRESS, InteractionResponse(step_id=1, content=MOCK_PROPERTY_HTML)).next_request
    stored = json.loads(json.dumps(request.carried_state))
    result = collector.get_bin_days(ADDRESS, InteractionResponse(step_id=2, content=MOCK_CALENDAR_2025_HTML,
                                                                 carried_state=stored))
    assert result.next_request.carried_state == collector.get_bin_days(
        ADDRESS, calendar_response(MOCK_CALENDAR_2025_HTML, request)).next_request.carried_state


def test_property_without_calendars_raises():
    with pytest.raises(ParseError):
        TheMorayCouncil().get_bin_days(ADDRESS, InteractionResponse(step_id=1, content="<html></html>"))


def test_calendar_without_year_raises():
    response = InteractionResponse(step_id=2, content="<html><body>Nothing</body></html>")
    with pytest.raises(ParseError):
        TheMorayCouncil().get_bin_days(ADDRESS, response)


def test_unknown_collection_class_raises(today):
    response = InteractionResponse(step_id=2, content=MOCK_CALENDAR_UNKNOWN_CLASS_HTML)
    with pytest.raises(ParseError):
        TheMorayCouncil().get_bin_days(ADDRESS, response)
