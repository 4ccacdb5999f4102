import json
import logging
from typing import Optional

from bs4 import BeautifulSoup

from ..data_models import GetCollectorResult, InteractionRequest, InteractionResponse
from ..errors import CollectorNotFoundError, GovUkIdNotFoundError, UnrecognisedStepError, UnsupportedCollectorError
from ..request_helpers import validate_postcode
from .base_collector import GOV_UK_BASE_URL, USER_AGENT
from .collector_factory import create_collector

logger = logging.getLogger(__name__)


def _gov_uk_id_from_url(url: Optional[str]) -> Optional[str]:
    if not url or "gov.uk" not in url:
        return None
    slug = url.rstrip("/").split("/")[-1].strip()
    return slug or None


def _gov_uk_id_from_html(html: str) -> Optional[str]:
    # the council is named by a link (or a hidden input) back to its gov.uk page
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["input", "a"]):
        url = tag.get("value") or tag.get("href")
        if url and url.startswith(f"{GOV_UK_BASE_URL}/"):
            return _gov_uk_id_from_url(url)
    return None


def get_collector(postcode: str, previous_response: Optional[InteractionResponse] = None) -> GetCollectorResult:
    """
    Finds the collector for a postcode by asking gov.uk which council serves it.

    Step 1 posts the postcode to gov.uk without following the redirect; the
    redirect target (or, failing that, the page body) names the council.

    Raises:
        InvalidPostcodeError: If the postcode is not a UK postcode.
        GovUkIdNotFoundError: If gov.uk's answer names no council.
        UnsupportedCollectorError: If the council has no collector here.
        UnrecognisedStepError: For any response other than step 1.
    """
    formatted = validate_postcode(postcode)

    if previous_response is None:
        request = InteractionRequest(
            step_id=1,
            url=GOV_UK_BASE_URL,
            method="POST",
            headers={"content-type": "application/json", "user-agent": USER_AGENT},
            body=json.dumps({"postcode": formatted}),
            follow_redirects=False,
        )
        return GetCollectorResult(next_request=request)

    if previous_response.step_id == 1:
        gov_uk_id = _gov_uk_id_from_url(previous_response.get_header("location"))
        if gov_uk_id is None:
            gov_uk_id = _gov_uk_id_from_html(previous_response.content)
        if gov_uk_id is None:
            raise GovUkIdNotFoundError(formatted)

        logger.info(f"gov.uk id for {formatted} is '{gov_uk_id}'")
        try:
            collector = create_collector(gov_uk_id)
        except CollectorNotFoundError as e:
            raise UnsupportedCollectorError(gov_uk_id) from e
        return GetCollectorResult(collector=collector)

    raise UnrecognisedStepError("gov.uk", "get_collector", previous_response.step_id)
