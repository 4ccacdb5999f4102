import logging
from datetime import timedelta
from typing import Optional, Sequence

from icalendar import Alarm, Calendar, Event

from .data_models import BinDay

logger = logging.getLogger(__name__)

DEFAULT_ICS_FILENAME = "bin_collections.ics"


def _bin_names(bin_day: BinDay) -> str:
    return ", ".join(b.name for b in bin_day.bins)


def generate_calendar_object(bin_days: Sequence[BinDay], address_text: Optional[str] = None) -> Calendar:
    """
    Generates an icalendar.Calendar with one all-day event per bin day.

    The location of each event is `address_text` if given, otherwise the
    bin day's own address.
    """
    cal = Calendar()
    cal.add('prodid', '-//Bin Days//bindays//EN')
    cal.add('version', '2.0')

    logger.debug(f"Generating calendar for {len(bin_days)} bin days")

    for bin_day in bin_days:
        names = _bin_names(bin_day)
        event = Event()
        event.add('summary', f"{names} collection")
        event.add('description', "Bins collected: " + "; ".join(
            f"{b.name} ({b.colour.value} {b.container_type.value.lower()})" for b in bin_day.bins
        ))
        # All-day event, marked as free time
        event.add('dtstart', bin_day.date)
        event.add('transp', 'TRANSPARENT')
        event.add('location', address_text or bin_day.address.display())

        # Reminder at 7:30 PM the day before
        alarm = Alarm()
        alarm.add('action', 'DISPLAY')
        alarm.add('description', f"Put out {names} tomorrow")
        alarm.add('trigger', timedelta(hours=-4.5))
        event.add_component(alarm)

        cal.add_component(event)

    return cal


def create_ics_file(bin_days: Sequence[BinDay], filename: str = DEFAULT_ICS_FILENAME,
                    address_text: Optional[str] = None) -> str:
    """Generates the calendar and writes it to `filename`. Returns the filename."""
    cal = generate_calendar_object(bin_days, address_text)
    with open(filename, 'wb') as f:
        f.write(cal.to_ical())
    logger.info(f"Calendar file '{filename}' generated with {len(bin_days)} events")
    return filename
