import abc
import logging
from typing import Callable, Dict, Optional, Sequence, Tuple, Union

from ..bin_days import process_bin_days, remove_past_bin_days
from ..data_models import (Address, BinDay, BinDefinition, GetAddressesResult, GetBinDaysResult,
                           InteractionRequest, InteractionResponse)
from ..errors import UnrecognisedStepError

logger = logging.getLogger(__name__)

GOV_UK_BASE_URL = "https://www.gov.uk/rubbish-collection-day"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:137.0) Gecko/20100101 Firefox/137.0"

# A step handler returns the next request, or the finished payload
AddressStep = Callable[[str, Optional[InteractionResponse]], Union[InteractionRequest, Sequence[Address]]]
BinDayStep = Callable[[Address, Optional[InteractionResponse]], Union[InteractionRequest, Sequence[BinDay]]]


class Collector(abc.ABC):
    """
    Abstract base class for a council's bin collection website.

    A collector never performs I/O. It is called repeatedly with the
    response to the request it returned last time, and answers with either
    the next request or a final result. Subclasses describe each operation
    as a step table: a dict from the step id of the incoming response
    (None at the start of a session) to the handler for that step.
    """

    name: str = ""
    website_url: str = ""
    gov_uk_id: str = ""
    catalog: Tuple[BinDefinition, ...] = ()

    # Some sites list past collections too
    drop_past_bin_days: bool = False

    @property
    def gov_uk_url(self) -> str:
        return f"{GOV_UK_BASE_URL}/{self.gov_uk_id}"

    @abc.abstractmethod
    def address_steps(self) -> Dict[Optional[int], AddressStep]:
        """Step table for get_addresses."""

    @abc.abstractmethod
    def bin_day_steps(self) -> Dict[Optional[int], BinDayStep]:
        """Step table for get_bin_days."""

    def get_addresses(self, postcode: str, previous_response: Optional[InteractionResponse] = None) -> GetAddressesResult:
        """
        Advances the address lookup for a postcode by one step.

        Args:
            postcode: The postcode to search for.
            previous_response: The response to the last request returned, or None to start.

        Returns:
            A GetAddressesResult holding either the next request or the addresses.

        Raises:
            UnrecognisedStepError: If previous_response has a step id this collector does not know.
        """
        handler = self._resolve_step(self.address_steps(), "get_addresses", previous_response)
        outcome = handler(postcode, previous_response)
        if isinstance(outcome, InteractionRequest):
            return GetAddressesResult(next_request=outcome)
        logger.info(f"{self.name}: found {len(outcome)} addresses for {postcode}")
        return GetAddressesResult(addresses=tuple(outcome))

    def get_bin_days(self, address: Address, previous_response: Optional[InteractionResponse] = None) -> GetBinDaysResult:
        """
        Advances the bin day lookup for an address by one step.

        The final payload always passes through the normaliser, so callers
        get one entry per date, in date order.
        """
        handler = self._resolve_step(self.bin_day_steps(), "get_bin_days", previous_response)
        outcome = handler(address, previous_response)
        if isinstance(outcome, InteractionRequest):
            return GetBinDaysResult(next_request=outcome)

        bin_days = process_bin_days(outcome)
        if self.drop_past_bin_days:
            bin_days = remove_past_bin_days(bin_days)
        logger.info(f"{self.name}: found {len(bin_days)} bin days for {address.uid}")
        return GetBinDaysResult(bin_days=bin_days)

    def _resolve_step(self, steps, operation: str, previous_response: Optional[InteractionResponse]):
        step_id = previous_response.step_id if previous_response is not None else None
        handler = steps.get(step_id)
        if handler is None:
            logger.error(f"{self.name}: {operation} received unrecognised step {step_id}")
            raise UnrecognisedStepError(self.name, operation, step_id)
        logger.debug(f"{self.name}: {operation} handling step {step_id}")
        return handler

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "websiteUrl": self.website_url,
            "govUkId": self.gov_uk_id,
            "govUkUrl": self.gov_uk_url,
        }
