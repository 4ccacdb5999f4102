import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Tuple

from bs4 import BeautifulSoup

from ..bin_days import match_bins
from ..carried_state import CarriedState, json_field
from ..data_models import (Address, BinColour, BinDay, BinDefinition, ContainerType,
                           InteractionRequest, InteractionResponse)
from ..errors import ParseError
from ..request_helpers import form_encode, format_postcode
from .base_collector import USER_AGENT, Collector

logger = logging.getLogger(__name__)

BASE_URL = "https://bindayfinder.moray.gov.uk/"
CALENDAR_LINK_RE = re.compile(r"cal_(\d{4})_view\.php\?id=\d+")
CALENDAR_YEAR_RE = re.compile(r"Collections for (\d{4})")

BIN_TYPES = (
    BinDefinition("General Waste", BinColour.GREEN, keys=("Green",)),
    BinDefinition("Garden Waste", BinColour.BROWN, keys=("Brown",)),
    BinDefinition("Paper and Card", BinColour.BLUE, keys=("Blue", "Card")),
    BinDefinition("Cans and Plastics", BinColour.PURPLE, keys=("Purple",)),
    BinDefinition("Glass", BinColour.ORANGE, keys=("Glass", "Orange"), container_type=ContainerType.BOX),
)

# Calendar cell classes name the colours collected that day
COLLECTION_CLASSES = {
    "B": "Brown",
    "GPOC": "Green Purple Blue Orange",
    "GBPOC": "Green Brown Purple Blue Orange",
}


@dataclass(frozen=True)
class CalendarState(CarriedState):
    # calendar pages still to fetch, oldest first
    pending: Tuple[str, ...] = json_field(default=())
    # (iso date, cell class) pairs gathered from pages already fetched
    collected: Tuple[Tuple[str, str], ...] = json_field(default=())


class TheMorayCouncil(Collector):
    """
    Moray's bin day finder publishes one calendar page per year.

    The property page links to every calendar available; the calendars are
    fetched one per round trip, carrying the remaining links and the
    collections parsed so far until none are left.
    """

    name = "The Moray Council"
    website_url = BASE_URL
    gov_uk_id = "moray"
    catalog = BIN_TYPES
    drop_past_bin_days = True

    def address_steps(self):
        return {
            None: self._request_addresses,
            1: self._parse_addresses,
        }

    def bin_day_steps(self):
        return {
            None: self._request_property_page,
            1: self._request_first_calendar,
            2: self._collect_calendar,
        }

    def _request_addresses(self, postcode: str, response: None) -> InteractionRequest:
        query = form_encode({"strname": "", "pcode": format_postcode(postcode)})
        return InteractionRequest(
            step_id=1,
            url=f"{BASE_URL}refuse_roads.php?{query}",
            headers={"user-agent": USER_AGENT},
        )

    def _parse_addresses(self, postcode: str, response: InteractionResponse) -> List[Address]:
        soup = BeautifulSoup(response.content, "html.parser")
        addresses = []
        for link in soup.find_all("a", href=re.compile(r"disp_bins\.php\?id=\d+")):
            uid = link["href"].split("id=", 1)[1]
            addresses.append(Address(
                property=" ".join(link.get_text().split()),
                postcode=format_postcode(postcode),
                uid=uid,
            ))
        return addresses

    def _request_property_page(self, address: Address, response: None) -> InteractionRequest:
        return InteractionRequest(
            step_id=1,
            url=f"{BASE_URL}disp_bins.php?id={address.uid}",
            headers={"user-agent": USER_AGENT},
        )

    def _request_first_calendar(self, address: Address, response: InteractionResponse) -> InteractionRequest:
        soup = BeautifulSoup(response.content, "html.parser")
        links = []
        for link in soup.find_all("a", href=CALENDAR_LINK_RE):
            href = link["href"]
            year = int(CALENDAR_LINK_RE.search(href).group(1))
            links.append((year, self._absolute_url(href)))
        if not links:
            raise ParseError("Moray: no calendar links found for the selected address")

        urls = [url for _, url in sorted(links)]
        return self._calendar_request(urls[0], CalendarState(pending=tuple(urls[1:])))

    def _collect_calendar(self, address: Address, response: InteractionResponse):
        state = CalendarState.from_wire(response.carried_state)
        collected = state.collected + self._parse_calendar(response.content)

        if state.pending:
            next_url, remaining = state.pending[0], state.pending[1:]
            logger.debug(f"Moray: {len(remaining)} calendars left after {next_url}")
            return self._calendar_request(next_url, CalendarState(pending=remaining, collected=collected))

        return [
            BinDay(
                date=date.fromisoformat(iso_date),
                address=address,
                bins=self._bins_for_class(collection_class),
            )
            for iso_date, collection_class in collected
        ]

    def _calendar_request(self, url: str, state: CalendarState) -> InteractionRequest:
        return InteractionRequest(
            step_id=2,
            url=url,
            headers={"user-agent": USER_AGENT},
            carried_state=state.to_wire(),
        )

    @staticmethod
    def _parse_calendar(html: str) -> Tuple[Tuple[str, str], ...]:
        year_match = CALENDAR_YEAR_RE.search(html)
        if not year_match:
            raise ParseError("Moray: calendar year not found")
        year = year_match.group(1)

        soup = BeautifulSoup(html, "html.parser")
        collections = []
        for month_container in soup.find_all("div", class_="month-container"):
            header = month_container.find("h2")
            days = month_container.find("div", class_="days-container")
            if header is None or days is None:
                raise ParseError("Moray: malformed month in calendar")
            month = header.get_text(strip=True)

            for day in days.find_all("div", recursive=False):
                collection_class = " ".join(day.get("class") or []).strip()
                day_number = day.get_text(strip=True)
                if not day_number.isdigit() or not collection_class or collection_class.lower() == "blank":
                    continue
                try:
                    collection_date = datetime.strptime(f"{day_number} {month} {year}", "%d %B %Y").date()
                except ValueError as e:
                    raise ParseError(f"Moray: bad calendar date '{day_number} {month} {year}'") from e
                collections.append((collection_date.isoformat(), collection_class))
        return tuple(collections)

    def _bins_for_class(self, collection_class: str):
        label = COLLECTION_CLASSES.get(collection_class)
        if label is None:
            raise ParseError(f"Moray: unrecognised collection class '{collection_class}'")
        return match_bins(self.catalog, label)

    @staticmethod
    def _absolute_url(url: str) -> str:
        if url.lower().startswith("http"):
            return url
        return f"{BASE_URL}{url.lstrip('/')}"
