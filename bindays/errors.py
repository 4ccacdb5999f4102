from typing import Optional


class BinDaysError(Exception):
    """Base class for every error raised by the collectors core."""


class ContractViolationError(BinDaysError):
    """Raised when the driver hands back something the current step cannot accept."""


class UnrecognisedStepError(ContractViolationError):
    """Raised when a response carries a step id the collector does not know."""

    def __init__(self, collector: str, operation: str, step_id: Optional[int]):
        super().__init__(f"{collector}: unrecognised step {step_id} for {operation}")
        self.collector = collector
        self.operation = operation
        self.step_id = step_id


class MissingHeaderError(ContractViolationError):
    """Raised when a response lacks a header the current step requires."""

    def __init__(self, header: str, step_id: Optional[int]):
        super().__init__(f"Step {step_id}: response is missing required header '{header}'")
        self.header = header
        self.step_id = step_id


class MissingCarriedStateError(ContractViolationError):
    """Raised when carried state comes back without a key the step needs."""

    def __init__(self, key: str):
        super().__init__(f"Carried state is missing required key '{key}'")
        self.key = key


class StepLimitExceededError(ContractViolationError):
    """Raised by the driver when a session never reaches a terminal result."""


class ParseError(BinDaysError):
    """Raised when expected structure is absent from response content."""


class GovUkIdNotFoundError(ParseError):
    def __init__(self, postcode: str):
        super().__init__(f"No gov.uk ID found for postcode: {postcode}")
        self.postcode = postcode


class InvalidPostcodeError(BinDaysError, ValueError):
    def __init__(self, postcode: str):
        super().__init__(f"Invalid postcode: {postcode}")
        self.postcode = postcode


class CollectorNotFoundError(BinDaysError, ValueError):
    def __init__(self, gov_uk_id: str):
        super().__init__(f"Unknown collector: {gov_uk_id}")
        self.gov_uk_id = gov_uk_id


class UnsupportedCollectorError(BinDaysError):
    """Raised when gov.uk names a council that has no collector here."""

    def __init__(self, gov_uk_id: str):
        super().__init__(f"Unsupported collector returned by gov.uk: {gov_uk_id}")
        self.gov_uk_id = gov_uk_id


class AddressesNotFoundError(BinDaysError):
    def __init__(self, gov_uk_id: str, postcode: str):
        super().__init__(f"No addresses found for gov.uk ID: {gov_uk_id} and postcode: {postcode}")
        self.gov_uk_id = gov_uk_id
        self.postcode = postcode


class BinDaysNotFoundError(BinDaysError):
    def __init__(self, gov_uk_id: str, postcode: Optional[str], uid: Optional[str]):
        super().__init__(f"No bin days found for gov.uk ID: {gov_uk_id}, postcode: {postcode}, UID: {uid}")
        self.gov_uk_id = gov_uk_id
        self.postcode = postcode
        self.uid = uid
