import logging
from typing import Dict, List, Type

from ..errors import CollectorNotFoundError
from .base_collector import Collector
from .gateshead_council import GatesheadCouncil
from .salford_city_council import SalfordCityCouncil
from .the_moray_council import TheMorayCouncil

logger = logging.getLogger(__name__)

# --- Add new councils here, keyed by gov.uk id ---
COLLECTORS: Dict[str, Type[Collector]] = {
    collector.gov_uk_id: collector
    for collector in (GatesheadCouncil, SalfordCityCouncil, TheMorayCouncil)
}


def create_collector(gov_uk_id: str) -> Collector:
    """
    Factory function to create the collector for a council.

    Args:
        gov_uk_id: The council's gov.uk identifier (e.g., "gateshead"), any case.

    Returns:
        A new instance of the matching Collector.

    Raises:
        CollectorNotFoundError: If no collector is registered for the id.
    """
    logger.info(f"Creating collector for gov.uk id: '{gov_uk_id}'")
    collector_class = COLLECTORS.get((gov_uk_id or "").strip().lower())
    if collector_class is None:
        logger.error(f"Unknown collector requested: {gov_uk_id}")
        raise CollectorNotFoundError(gov_uk_id)
    return collector_class()


def get_collectors() -> List[Collector]:
    """Returns one instance of every registered collector, ordered by name."""
    return sorted((collector_class() for collector_class in COLLECTORS.values()), key=lambda c: c.name)
