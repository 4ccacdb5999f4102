"""
Typed views over the opaque carried-state map.

The driver echoes carried state back as a plain string-to-string map. Each
collector declares a frozen dataclass describing the keys it threads
between steps and converts at the boundary only:

    @dataclass(frozen=True)
    class SessionState(CarriedState):
        cookie: str
        postcode: Optional[str] = None
        pending: Tuple[str, ...] = json_field(default=())

Fields without a default are required: `from_wire` raises
MissingCarriedStateError when one is absent. Fields made with `json_field`
travel JSON-encoded, which is how worklists and partial results move from
one round trip to the next.
"""
import json
from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from .errors import MissingCarriedStateError

T = TypeVar("T", bound="CarriedState")

_JSON = "json"


def json_field(default: Any = MISSING) -> Any:
    """A carried-state field stored as JSON on the wire."""
    if default is MISSING:
        return field(metadata={_JSON: True})
    return field(default=default, metadata={_JSON: True})


def _decode_json(value: Any) -> Any:
    decoded = json.loads(value)
    # tuples survive the round trip as lists; keep them immutable
    if isinstance(decoded, list):
        return tuple(tuple(item) if isinstance(item, list) else item for item in decoded)
    return decoded


@dataclass(frozen=True)
class CarriedState:

    def to_wire(self) -> Dict[str, str]:
        wire = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.metadata.get(_JSON):
                wire[f.name] = json.dumps(value, separators=(",", ":"))
            else:
                wire[f.name] = str(value)
        return wire

    @classmethod
    def from_wire(cls: Type[T], wire: Optional[Mapping[str, str]]) -> T:
        wire = wire or {}
        values = {}
        for f in fields(cls):
            if f.name not in wire:
                if f.default is MISSING and f.default_factory is MISSING:
                    raise MissingCarriedStateError(f.name)
                continue
            raw = wire[f.name]
            values[f.name] = _decode_json(raw) if f.metadata.get(_JSON) else raw
        return cls(**values)
