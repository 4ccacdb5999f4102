from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import MissingHeaderError


class BinColour(Enum):
    """Container colours, valued by their display string."""
    RED = "Red"
    GREEN = "Green"
    LIGHT_GREEN = "Light Green"
    BLUE = "Blue"
    LIGHT_BLUE = "Light Blue"
    BLACK = "Black"
    GREY = "Grey"
    YELLOW = "Yellow"
    ORANGE = "Orange"
    PURPLE = "Purple"
    PINK = "Pink"
    BROWN = "Brown"
    WHITE = "White"


class ContainerType(Enum):
    BIN = "Bin"
    BOX = "Box"
    BAG = "Bag"
    CADDY = "Caddy"
    SACK = "Sack"
    CONTAINER = "Container"


@dataclass(frozen=True)
class BinDefinition:
    """
    One collection stream in a collector's catalog.

    Two definitions are equal when name, colour and container type agree;
    the match keys never take part in equality.
    """
    name: str
    colour: BinColour
    keys: Tuple[str, ...] = field(default=(), compare=False)
    container_type: ContainerType = ContainerType.BIN

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "colour": self.colour.value,
            "type": self.container_type.value,
            "keys": list(self.keys),
        }


@dataclass(frozen=True)
class Address:
    """An address as returned by a collector's address lookup."""
    postcode: Optional[str] = None
    uid: Optional[str] = None
    property: Optional[str] = None
    street: Optional[str] = None
    town: Optional[str] = None

    def display(self) -> str:
        parts = [self.property, self.street, self.town, self.postcode]
        return ", ".join(part for part in parts if part)

    def to_dict(self) -> dict:
        return {
            "property": self.property,
            "street": self.street,
            "town": self.town,
            "postcode": self.postcode,
            "uid": self.uid,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Address":
        return cls(
            postcode=data.get("postcode"),
            uid=data.get("uid"),
            property=data.get("property"),
            street=data.get("street"),
            town=data.get("town"),
        )


@dataclass(frozen=True)
class BinDay:
    """The bins collected from one address on one date."""
    date: date
    address: Address
    bins: Tuple[BinDefinition, ...]

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "address": self.address.to_dict(),
            "bins": [b.to_dict() for b in self.bins],
        }


@dataclass(frozen=True)
class InteractionRequest:
    """An HTTP request the driver must perform on the collector's behalf."""
    step_id: int
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    carried_state: Dict[str, str] = field(default_factory=dict)
    follow_redirects: bool = True

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "url": self.url,
            "method": self.method,
            "headers": dict(self.headers),
            "body": self.body,
            "carriedState": dict(self.carried_state),
            "followRedirects": self.follow_redirects,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InteractionRequest":
        return cls(
            step_id=int(data["stepId"]),
            url=data["url"],
            method=data.get("method", "GET"),
            headers=dict(data.get("headers") or {}),
            body=data.get("body"),
            carried_state=dict(data.get("carriedState") or {}),
            follow_redirects=data.get("followRedirects", True),
        )


@dataclass(frozen=True)
class InteractionResponse:
    """
    What the driver received for the most recent InteractionRequest.

    Header names are matched case-insensitively. Repeated headers (such as
    set-cookie) arrive joined with ", " in a single value.
    """
    step_id: int
    content: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    carried_state: Dict[str, str] = field(default_factory=dict)
    status_code: int = 200

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    def require_header(self, name: str) -> str:
        value = self.get_header(name)
        if value is None:
            raise MissingHeaderError(name, self.step_id)
        return value

    def to_dict(self) -> dict:
        return {
            "stepId": self.step_id,
            "statusCode": self.status_code,
            "headers": dict(self.headers),
            "content": self.content,
            "carriedState": dict(self.carried_state),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InteractionResponse":
        return cls(
            step_id=int(data["stepId"]),
            content=data.get("content") or "",
            headers=dict(data.get("headers") or {}),
            carried_state=dict(data.get("carriedState") or {}),
            status_code=int(data.get("statusCode", 200)),
        )


def _check_exactly_one(next_request: Optional[InteractionRequest], payload: Any, payload_name: str):
    if (next_request is None) == (payload is None):
        raise ValueError(f"Exactly one of next_request or {payload_name} must be set")


@dataclass(frozen=True)
class GetAddressesResult:
    next_request: Optional[InteractionRequest] = None
    addresses: Optional[Tuple[Address, ...]] = None

    def __post_init__(self):
        _check_exactly_one(self.next_request, self.addresses, "addresses")

    def to_dict(self) -> dict:
        return {
            "nextRequest": self.next_request.to_dict() if self.next_request else None,
            "addresses": [a.to_dict() for a in self.addresses] if self.addresses is not None else None,
        }


@dataclass(frozen=True)
class GetBinDaysResult:
    next_request: Optional[InteractionRequest] = None
    bin_days: Optional[Tuple[BinDay, ...]] = None

    def __post_init__(self):
        _check_exactly_one(self.next_request, self.bin_days, "bin_days")

    def to_dict(self) -> dict:
        return {
            "nextRequest": self.next_request.to_dict() if self.next_request else None,
            "binDays": [b.to_dict() for b in self.bin_days] if self.bin_days is not None else None,
        }


@dataclass(frozen=True)
class GetCollectorResult:
    next_request: Optional[InteractionRequest] = None
    collector: Optional[Any] = None  # a Collector instance

    def __post_init__(self):
        _check_exactly_one(self.next_request, self.collector, "collector")

    def to_dict(self) -> dict:
        return {
            "nextRequest": self.next_request.to_dict() if self.next_request else None,
            "collector": self.collector.to_dict() if self.collector is not None else None,
        }


def bin_days_as_dicts(bin_days: List[BinDay]) -> List[dict]:
    return [bin_day.to_dict() for bin_day in bin_days]
