import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from ..bin_days import match_bins
from ..carried_state import CarriedState
from ..data_models import (Address, BinColour, BinDay, BinDefinition, InteractionRequest,
                           InteractionResponse)
from ..errors import ParseError
from ..request_helpers import (form_encode, merge_cookies, parse_date_inferring_year,
                               parse_set_cookie_for_request_cookie)
from .base_collector import USER_AGENT, Collector

logger = logging.getLogger(__name__)

# --- Configuration ---
BASE_URL = "https://www.gateshead.gov.uk"
BIN_CHECKER_URL = f"{BASE_URL}/article/3150/Bin-collection-day-checker"
PROCESS_SUBMISSION_URL = f"{BASE_URL}/apiserver/formsservice/http/processsubmission"
FORM_PREFIX = "BINCOLLECTIONCHECKER_"

BIN_TYPES = (
    BinDefinition("Household Waste", BinColour.GREEN, keys=("Household",)),
    BinDefinition("Glass, Plastic and Cans", BinColour.BLUE, keys=("Glass, plastic and cans",)),
    BinDefinition("Paper and Cardboard", BinColour.LIGHT_BLUE, keys=("Paper and cardboard",)),
    BinDefinition("Garden Waste", BinColour.BROWN, keys=("Garden",)),
)


@dataclass(frozen=True)
class GatesheadState(CarriedState):
    cookie: str
    postcode: Optional[str] = None


class GatesheadCouncil(Collector):
    """
    Gateshead's bin collection day checker.

    The form sits behind a cookie challenge: the first page load only hands
    out a cookie, the second returns the form. Submitting the form answers
    with two redirects (a cookie check, then the results page) which are
    followed one step at a time so their cookies can be collected.
    """

    name = "Gateshead Council"
    website_url = f"{BASE_URL}/"
    gov_uk_id = "gateshead"
    catalog = BIN_TYPES

    def address_steps(self):
        return {
            None: lambda postcode, response: self._request_checker_page(),
            1: lambda postcode, response: self._request_form_page(response, postcode),
            2: self._submit_postcode,
            3: lambda postcode, response: self._follow_redirect(response, 4, keep_postcode=True),
            4: lambda postcode, response: self._follow_redirect(response, 5, keep_postcode=True),
            5: self._parse_addresses,
        }

    def bin_day_steps(self):
        return {
            None: lambda address, response: self._request_checker_page(),
            1: lambda address, response: self._request_form_page(response, address.postcode),
            2: self._submit_address,
            3: lambda address, response: self._follow_redirect(response, 4),
            4: lambda address, response: self._follow_redirect(response, 5),
            5: self._parse_bin_days,
        }

    # --- Shared steps ---

    def _request_checker_page(self) -> InteractionRequest:
        return InteractionRequest(
            step_id=1,
            url=BIN_CHECKER_URL,
            headers={"user-agent": USER_AGENT},
        )

    def _request_form_page(self, response: InteractionResponse, postcode: Optional[str]) -> InteractionRequest:
        cookie = parse_set_cookie_for_request_cookie(response.require_header("set-cookie"))
        state = GatesheadState(cookie=cookie, postcode=postcode)
        return InteractionRequest(
            step_id=2,
            url=BIN_CHECKER_URL,
            headers={"cookie": cookie, "user-agent": USER_AGENT},
            carried_state=state.to_wire(),
        )

    def _follow_redirect(self, response: InteractionResponse, next_step: int, keep_postcode: bool = False) -> InteractionRequest:
        state = GatesheadState.from_wire(response.carried_state)
        cookie = self._collect_cookies(state, response)
        next_state = GatesheadState(cookie=cookie, postcode=state.postcode if keep_postcode else None)
        return InteractionRequest(
            step_id=next_step,
            url=response.require_header("location"),
            headers={"cookie": cookie, "referer": BIN_CHECKER_URL, "user-agent": USER_AGENT},
            carried_state=next_state.to_wire(),
            follow_redirects=False,
        )

    def _submit_form(self, response: InteractionResponse, state: GatesheadState, extra_fields: Dict[str, str]) -> InteractionRequest:
        cookie = self._collect_cookies(state, response)
        hidden = self._parse_hidden_fields(response.content)
        page_session_id = hidden["PAGESESSIONID"]
        session_id = hidden["SESSIONID"]
        nonce = hidden["NONCE"]

        form_data = {
            f"{FORM_PREFIX}PAGESESSIONID": page_session_id,
            f"{FORM_PREFIX}SESSIONID": session_id,
            f"{FORM_PREFIX}NONCE": nonce,
            f"{FORM_PREFIX}VARIABLES": "e30=",
            f"{FORM_PREFIX}PAGENAME": "ADDRESSSEARCH",
            f"{FORM_PREFIX}PAGEINSTANCE": "0",
            f"{FORM_PREFIX}ADDRESSSEARCH_ASSISTON": "true",
            f"{FORM_PREFIX}ADDRESSSEARCH_ADDRESSLOOKUPPOSTCODE": state.postcode or "",
            f"{FORM_PREFIX}ADDRESSSEARCH_ADDRESSLOOKUPADDRESS": "0",
        }
        form_data.update(extra_fields)
        form_data[f"{FORM_PREFIX}FORMACTION_NEXT"] = f"{FORM_PREFIX}ADDRESSSEARCH_NEXTBUTTON"

        query = form_encode({"pageSessionId": page_session_id, "fsid": session_id, "fsn": nonce})
        return InteractionRequest(
            step_id=3,
            url=f"{PROCESS_SUBMISSION_URL}?{query}",
            method="POST",
            headers={
                "content-type": "application/x-www-form-urlencoded",
                "cookie": cookie,
                "user-agent": USER_AGENT,
            },
            body=form_encode(form_data),
            carried_state=GatesheadState(cookie=cookie, postcode=state.postcode).to_wire(),
            follow_redirects=False,
        )

    # --- Address steps ---

    def _submit_postcode(self, postcode: str, response: InteractionResponse) -> InteractionRequest:
        state = GatesheadState.from_wire(response.carried_state)
        return self._submit_form(response, state, {})

    def _parse_addresses(self, postcode: str, response: InteractionResponse) -> List[Address]:
        state = GatesheadState.from_wire(response.carried_state)
        soup = BeautifulSoup(response.content, "html.parser")
        addresses = []
        for option in soup.find_all("option"):
            uid = (option.get("value") or "").strip()
            text = option.get_text(strip=True)
            if not uid or uid == "0" or text.lower().startswith("select an address"):
                continue
            addresses.append(Address(property=text, postcode=state.postcode or postcode, uid=uid))
        return addresses

    # --- Bin day steps ---

    def _submit_address(self, address: Address, response: InteractionResponse) -> InteractionRequest:
        state = GatesheadState.from_wire(response.carried_state)
        return self._submit_form(response, state, {
            f"{FORM_PREFIX}ADDRESSSEARCH_UPRN": address.uid or "",
            f"{FORM_PREFIX}ADDRESSSEARCH_ADDRESSTEXT": address.property or "",
        })

    def _parse_bin_days(self, address: Address, response: InteractionResponse) -> List[BinDay]:
        """Parses the month-grouped collections table into raw bin days."""
        soup = BeautifulSoup(response.content, "html.parser")
        table = soup.find("table", class_="bincollections__table")
        if table is None:
            if soup.find(string=lambda t: t and "no collection dates found" in t.lower()):
                return []
            raise ParseError("Gateshead: bin collections table not found")

        bin_days = []
        current_month = None
        for row in table.find_all("tr"):
            month_header = row.find("th")
            if month_header:
                current_month = month_header.get_text(strip=True)
                continue
            cells = row.find_all("td")
            if len(cells) != 3:
                continue
            if not current_month:
                raise ParseError("Gateshead: collection row found before any month header")

            day_of_month = cells[0].get_text(strip=True)
            day_of_week = cells[1].get_text(strip=True)
            collection_date = parse_date_inferring_year(f"{day_of_week} {day_of_month} {current_month}", "%A %d %B")

            links = cells[2].find_all("a")
            labels = [link.get_text(strip=True) for link in links] or [cells[2].get_text(" ", strip=True)]
            for label in labels:
                bins = match_bins(self.catalog, label)
                if not bins:
                    logger.warning(f"Gateshead: unrecognised service '{label}' on {collection_date}")
                bin_days.append(BinDay(date=collection_date, address=address, bins=bins))
        return bin_days

    # --- Parsing helpers ---

    @staticmethod
    def _collect_cookies(state: GatesheadState, response: InteractionResponse) -> str:
        new_cookies = parse_set_cookie_for_request_cookie(response.get_header("set-cookie"))
        return merge_cookies(state.cookie, new_cookies)

    @staticmethod
    def _parse_hidden_fields(html: str) -> Dict[str, str]:
        soup = BeautifulSoup(html, "html.parser")
        fields = {}
        for name in ("PAGESESSIONID", "SESSIONID", "NONCE"):
            field_input = soup.find("input", {"name": f"{FORM_PREFIX}{name}"})
            if field_input is None or field_input.get("value") is None:
                raise ParseError(f"Gateshead: form field {FORM_PREFIX}{name} not found")
            fields[name] = field_input.get("value")
        return fields
