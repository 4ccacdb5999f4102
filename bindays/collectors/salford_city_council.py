import json
import logging
from datetime import datetime
from typing import List

from icalendar import Calendar

from ..bin_days import match_bins
from ..data_models import Address, BinColour, BinDay, BinDefinition, InteractionRequest, InteractionResponse
from ..errors import ParseError
from ..request_helpers import form_encode
from .base_collector import USER_AGENT, Collector

logger = logging.getLogger(__name__)

BASE_URL = "https://www.salford.gov.uk"
ADDRESS_SEARCH_URL = f"{BASE_URL}/umbraco/api/SalfordAPI/AddressSearch"
COLLECTIONS_ICS_URL = f"{BASE_URL}/umbraco/api/salfordapi/GetBinCollectionsICS/"

BIN_TYPES = (
    BinDefinition("Household Waste", BinColour.BLACK, keys=("Black bin",)),
    BinDefinition("Food and Garden Waste", BinColour.PINK, keys=("Pink lidded bin",)),
    BinDefinition("Paper and Cardboard", BinColour.BLUE, keys=("Blue bin",)),
    BinDefinition("Glass, Cans and Plastics", BinColour.BROWN, keys=("Brown bin",)),
)


class SalfordCityCouncil(Collector):
    """Salford publishes collections as an iCalendar feed per property."""

    name = "Salford City Council"
    website_url = BASE_URL
    gov_uk_id = "salford"
    catalog = BIN_TYPES

    def address_steps(self):
        return {
            None: self._request_addresses,
            1: self._parse_addresses,
        }

    def bin_day_steps(self):
        return {
            None: self._request_calendar,
            1: self._parse_calendar,
        }

    def _request_addresses(self, postcode: str, response: None) -> InteractionRequest:
        return InteractionRequest(
            step_id=1,
            url=ADDRESS_SEARCH_URL,
            method="POST",
            headers={
                "user-agent": USER_AGENT,
                "content-type": "application/x-www-form-urlencoded; charset=UTF-8",
            },
            body=form_encode({"QueryStr": postcode}),
        )

    def _parse_addresses(self, postcode: str, response: InteractionResponse) -> List[Address]:
        try:
            results = json.loads(response.content)["addresses"]
            return [
                Address(property=item["address"].strip(), postcode=postcode, uid=str(item["uprn"]))
                for item in results
            ]
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            raise ParseError(f"Salford: unexpected address search response: {e}") from e

    def _request_calendar(self, address: Address, response: None) -> InteractionRequest:
        return InteractionRequest(
            step_id=1,
            url=f"{COLLECTIONS_ICS_URL}?{form_encode({'UPRN': address.uid or ''})}",
            headers={"user-agent": USER_AGENT},
        )

    def _parse_calendar(self, address: Address, response: InteractionResponse) -> List[BinDay]:
        try:
            calendar = Calendar.from_ical(response.content)
        except ValueError as e:
            raise ParseError(f"Salford: collections feed is not a calendar: {e}") from e

        bin_days = []
        for event in calendar.walk("VEVENT"):
            summary = event.get("summary")
            start = event.get("dtstart")
            if summary is None or start is None:
                raise ParseError("Salford: calendar event without a summary or start date")
            collection_date = start.dt.date() if isinstance(start.dt, datetime) else start.dt
            bins = match_bins(self.catalog, str(summary))
            if not bins:
                logger.warning(f"Salford: unrecognised collection '{summary}' on {collection_date}")
            bin_days.append(BinDay(date=collection_date, address=address, bins=bins))
        return bin_days
