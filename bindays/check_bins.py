import argparse
import json
import logging
import os
import random
import re
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from bindays.bin_days import remove_past_bin_days
from bindays.calendar_generator import create_ics_file
from bindays.client import RequestsClient
from bindays.collectors.collector_factory import create_collector
from bindays.data_models import Address, bin_days_as_dicts

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv()
DEFAULT_POSTCODE = os.environ.get("MY_POSTCODE")
DEFAULT_HOUSE_NUMBER = os.environ.get("MY_HOUSE_NUMBER")  # Can be None
DEFAULT_COLLECTOR = os.environ.get("BINDAYS_COLLECTOR")  # None means ask gov.uk
LOG_FILE = os.path.join(project_root, 'error.log')

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = LOG_FILE):
    """Logs everything to `log_file` and INFO and above to stderr."""
    root = logging.getLogger('')
    if root.hasHandlers():
        return
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
                        filename=log_file, filemode='a')
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root.addHandler(console_handler)


def select_address(addresses: Sequence[Address], house_number: Optional[str]) -> Optional[Address]:
    """
    Picks the address for a house number or name.

    The house number must appear as a whole word in the address. With no
    house number a random address is returned.
    """
    if not addresses:
        return None
    if not house_number:
        return random.choice(list(addresses))

    pattern = re.compile(rf"\b{re.escape(house_number.strip())}\b", re.IGNORECASE)
    for address in addresses:
        if pattern.search(address.display()):
            return address
    return None


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check bin collection schedule.")
    parser.add_argument("--postcode", "-p", help="Postcode (Defaults to MY_POSTCODE env var).")
    parser.add_argument("--house-number", "-n", type=str, default=DEFAULT_HOUSE_NUMBER,
                        help="House number/name (Optional, defaults to MY_HOUSE_NUMBER env var. "
                             "If omitted, a random address for the postcode is used).")
    parser.add_argument("--collector", "-c", default=DEFAULT_COLLECTOR,
                        help="gov.uk id of the council (Defaults to BINDAYS_COLLECTOR env var. "
                             "If omitted, gov.uk is asked which council serves the postcode).")
    parser.add_argument("--include-past", action="store_true", help="Keep collections before today.")
    parser.add_argument("--save-ics", "-i", action="store_true", help="Save schedule to ICS file.")
    args = parser.parse_args(argv)

    setup_logging()

    postcode = args.postcode if args.postcode else DEFAULT_POSTCODE
    house_number: Optional[str] = args.house_number

    if not postcode:
        print("Error: Postcode required.", file=sys.stderr)
        sys.exit(1)

    log_info_hn = f" for house number '{house_number}'" if house_number else " (random house number)"
    logger.info(f"Checking bins for postcode '{postcode}'{log_info_hn}")

    client = RequestsClient()
    try:
        collector = create_collector(args.collector) if args.collector else client.get_collector(postcode)
        logger.info(f"Using collector '{collector.name}'")

        addresses = client.get_addresses(collector, postcode)
        address = select_address(addresses, house_number)
        if address is None:
            logger.error(f"No address matching '{house_number}' among {len(addresses)} addresses for {postcode}")
            print(f"\nERROR: No address found{log_info_hn} at '{postcode}'.", file=sys.stderr)
            sys.exit(1)

        bin_days = client.get_bin_days(collector, address)
        if not args.include_past:
            bin_days = remove_past_bin_days(bin_days)
    except Exception as e:
        logger.error(f"Failed to fetch schedule for postcode '{postcode}': {e}", exc_info=True)
        print(f"\nERROR: {e} Check {LOG_FILE}.", file=sys.stderr)
        sys.exit(1)

    logger.info(f"--- Bin Collection Schedule for {address.display()} ---")
    if bin_days:
        print(json.dumps(bin_days_as_dicts(bin_days), indent=4))
    else:
        logger.info("No upcoming collections found for this address.")
        print("No upcoming collections found.")

    if args.save_ics:
        if bin_days:
            create_ics_file(bin_days, address_text=address.display())
        else:
            logger.info("Skipping ICS file generation (no collections).")

    logger.info("Check complete.")


if __name__ == "__main__":
    main()
