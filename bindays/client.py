import logging
from typing import Callable, List, Optional, TypeVar

import requests

from .collectors.base_collector import Collector
from .collectors.govuk import get_collector
from .data_models import Address, BinDay, InteractionRequest, InteractionResponse
from .errors import AddressesNotFoundError, BinDaysNotFoundError, StepLimitExceededError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
DEFAULT_MAX_STEPS = 25

R = TypeVar("R")


class RequestsClient:
    """
    Drives a collector's step machine over real HTTP.

    Each request is sent on its own, with no shared cookie jar: cookies
    only travel in the headers the collector builds.
    """

    def __init__(self, timeout: int = DEFAULT_TIMEOUT, max_steps: int = DEFAULT_MAX_STEPS):
        self.timeout = timeout
        self.max_steps = max_steps

    def send(self, request: InteractionRequest) -> InteractionResponse:
        """Performs one InteractionRequest and packages what came back."""
        logger.debug(f"Step {request.step_id}: {request.method} {request.url}")
        data = request.body.encode("utf-8") if request.body is not None else None
        response = requests.request(
            request.method,
            request.url,
            headers=request.headers,
            data=data,
            allow_redirects=request.follow_redirects,
            timeout=self.timeout,
        )
        logger.debug(f"Step {request.step_id}: HTTP {response.status_code}")
        return InteractionResponse(
            step_id=request.step_id,
            content=response.text,
            headers={name.lower(): value for name, value in response.headers.items()},
            carried_state=dict(request.carried_state),
            status_code=response.status_code,
        )

    def run_cycle(self, step: Callable[[Optional[InteractionResponse]], R], extract: Callable[[R], Optional[object]]):
        """
        Calls `step` until `extract` finds a payload in its result.

        `step` is called with None first, then with each response in turn.
        """
        response: Optional[InteractionResponse] = None
        for _ in range(self.max_steps):
            result = step(response)
            payload = extract(result)
            if payload is not None:
                return payload
            response = self.send(result.next_request)
        raise StepLimitExceededError(f"No result after {self.max_steps} steps")

    def get_collector(self, postcode: str) -> Collector:
        return self.run_cycle(lambda response: get_collector(postcode, response), lambda r: r.collector)

    def get_addresses(self, collector: Collector, postcode: str) -> List[Address]:
        addresses = self.run_cycle(
            lambda response: collector.get_addresses(postcode, response),
            lambda r: r.addresses,
        )
        if not addresses:
            raise AddressesNotFoundError(collector.gov_uk_id, postcode)
        return list(addresses)

    def get_bin_days(self, collector: Collector, address: Address) -> List[BinDay]:
        bin_days = self.run_cycle(
            lambda response: collector.get_bin_days(address, response),
            lambda r: r.bin_days,
        )
        if not bin_days:
            raise BinDaysNotFoundError(collector.gov_uk_id, address.postcode, address.uid)
        return list(bin_days)
