import logging
import os
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytz

from .data_models import BinDay, BinDefinition

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/London"


def local_today(timezone: Optional[str] = None) -> date:
    """Today's date where the bins are, not where the process runs."""
    tz_name = timezone or os.environ.get("BINDAYS_TIMEZONE") or DEFAULT_TIMEZONE
    return datetime.now(pytz.timezone(tz_name)).date()


def match_bins(catalog: Sequence[BinDefinition], label: str) -> Tuple[BinDefinition, ...]:
    """
    Returns every catalog entry with a key found in `label` (case-insensitive).

    A label may match none, one or several entries; results keep catalog order.
    """
    if not label or not catalog:
        return ()
    label_lower = label.lower()
    return tuple(
        definition for definition in catalog
        if any(key and key.lower() in label_lower for key in definition.keys)
    )


def process_bin_days(raw_bin_days: Iterable[BinDay]) -> Tuple[BinDay, ...]:
    """
    Merges raw per-stream records into one BinDay per date, sorted by date.

    Bins sharing a date are unioned (name, colour and container type decide
    sameness) in the order they were first seen. Records that matched no
    bins are dropped.
    """
    grouped: Dict[date, List[BinDay]] = {}
    for raw in raw_bin_days:
        if not raw.bins:
            logger.warning(f"Dropping collection on {raw.date} with no recognised bins")
            continue
        grouped.setdefault(raw.date, []).append(raw)

    merged = []
    for collection_date in sorted(grouped):
        records = grouped[collection_date]
        bins: Dict[BinDefinition, None] = {}
        for record in records:
            for bin_definition in record.bins:
                bins.setdefault(bin_definition, None)
        merged.append(BinDay(date=collection_date, address=records[0].address, bins=tuple(bins)))

    logger.debug(f"Normalised {sum(len(r) for r in grouped.values())} records into {len(merged)} bin days")
    return tuple(merged)


def remove_past_bin_days(bin_days: Iterable[BinDay], today: Optional[date] = None) -> Tuple[BinDay, ...]:
    """Drops bin days strictly before today."""
    if today is None:
        today = local_today()
    return tuple(bin_day for bin_day in bin_days if bin_day.date >= today)
