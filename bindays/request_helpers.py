import logging
import re
import time
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional, Union
from urllib.parse import urlencode

from .bin_days import local_today
from .errors import InvalidPostcodeError, ParseError

logger = logging.getLogger(__name__)

# name=value pairs at the start of the header or after a comma joining two cookies
COOKIE_PAIR_RE = re.compile(r"(?:^|,)\s*([^=;,\s]+=[^;,]*)")
COOKIE_ATTRIBUTES = {"path", "expires", "domain", "max-age", "secure", "httponly", "samesite", "priority", "partitioned"}

UK_POSTCODE_RE = re.compile(r"^[A-Z]{1,2}[0-9][A-Z0-9]? [0-9][A-Z]{2}$")

YEAR_DIRECTIVES = ("%Y", "%y", "%G")
WEEKDAY_DIRECTIVES = ("%A", "%a")
DEFAULT_PAST_TOLERANCE = timedelta(days=7)


def form_encode(data: Optional[Mapping[str, str]]) -> str:
    """Encodes a mapping as application/x-www-form-urlencoded, keeping its order."""
    if not data:
        return ""
    return urlencode(list(data.items()))


def parse_set_cookie_for_request_cookie(set_cookie: Union[str, Iterable[str], None]) -> str:
    """
    Turns one or more Set-Cookie header values into a Cookie request header.

    Several cookies may share one value, joined by commas (the way repeated
    headers are folded). Attributes such as Path, Expires or HttpOnly are
    dropped. Returns "" for empty input.
    """
    if not set_cookie:
        return ""
    if not isinstance(set_cookie, str):
        set_cookie = ",".join(set_cookie)

    pairs = []
    for match in COOKIE_PAIR_RE.finditer(set_cookie):
        pair = match.group(1).strip()
        name = pair.split("=", 1)[0]
        if not pair or name.lower() in COOKIE_ATTRIBUTES:
            continue
        pairs.append(pair)
    return "; ".join(pairs)


def merge_cookies(*cookie_headers: Optional[str]) -> str:
    """Joins Cookie header values; a later value for the same name replaces an earlier one."""
    merged = {}
    for header in cookie_headers:
        if not header:
            continue
        for pair in header.split(";"):
            pair = pair.strip()
            if not pair or "=" not in pair:
                continue
            name, value = pair.split("=", 1)
            merged.pop(name, None)
            merged[name] = value
    return "; ".join(f"{name}={value}" for name, value in merged.items())


def format_postcode(raw: str) -> str:
    """Uppercases a postcode and puts a single space before the inward code."""
    compact = "".join((raw or "").split()).upper()
    if len(compact) <= 3:
        return compact
    return f"{compact[:-3]} {compact[-3:]}"


def validate_postcode(raw: str) -> str:
    formatted = format_postcode(raw)
    if not UK_POSTCODE_RE.match(formatted):
        raise InvalidPostcodeError(raw)
    return formatted


def _parse_with_year(text: str, fmt: str, year: int) -> Optional[date]:
    try:
        parsed = datetime.strptime(f"{text} {year}", f"{fmt} %Y").date()
    except ValueError:
        return None  # e.g. 29 February outside a leap year

    if any(d in fmt for d in WEEKDAY_DIRECTIVES):
        # datetime.strptime ignores the weekday; time.strptime keeps what was parsed
        stated_weekday = time.strptime(f"{text} {year}", f"{fmt} %Y").tm_wday
        if stated_weekday != parsed.weekday():
            return None
    return parsed


def parse_date_inferring_year(
    text: str,
    fmt: str,
    today: Optional[date] = None,
    tolerance: timedelta = DEFAULT_PAST_TOLERANCE,
) -> date:
    """
    Parses a date that states a day and month but no year.

    The date lands in the current year unless that would put it more than
    `tolerance` before today, in which case it moves to next year. If `fmt`
    names the weekday, only a year where the weekday agrees is accepted
    (the previous year is tried last).

    Args:
        text: The date text, e.g. "20 January" or "Monday 29 December".
        fmt: A strptime format without a year, e.g. "%d %B" or "%A %d %B".
        today: The reference date. Defaults to the current local date.
        tolerance: How far in the past a date may be and still keep this year.

    Raises:
        ValueError: If fmt already contains a year directive.
        ParseError: If no candidate year yields a valid date.
    """
    if any(d in fmt for d in YEAR_DIRECTIVES):
        raise ValueError(f"The format '{fmt}' already contains a year; parse it directly.")

    if today is None:
        today = local_today()

    text = " ".join(text.split())
    earliest = today - tolerance
    candidates = [
        _parse_with_year(text, fmt, year)
        for year in (today.year, today.year + 1, today.year - 1)
    ]

    for candidate in candidates:
        if candidate is not None and candidate >= earliest:
            return candidate
    for candidate in candidates:
        if candidate is not None:
            return candidate

    logger.debug(f"Could not parse '{text}' with format '{fmt}'")
    raise ParseError(f"Unparseable date '{text}' for format '{fmt}'")
