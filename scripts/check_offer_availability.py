"""
Check offer availability - remaining quota per slot/day for an offer.

Usage:
    python scripts/check_offer_availability.py <offer_id> [--date YYYY-MM-DD] [--days N]
"""

import argparse
import sys
from datetime import date, timedelta
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.dependencies import get_availability_service, get_offer_store
from domain.time import parse_iso_date
from repositories.interfaces import OfferNotFoundError


def check_offer_availability(offer_id: str, start: date, days: int) -> int:
    """Print remaining quota for each bookable unit, starting at `start`."""

    store = get_offer_store()
    service = get_availability_service()

    try:
        offer = store.load_offer(offer_id)
    except OfferNotFoundError as e:
        print(f"[ERROR] {e}")
        return 1

    print("=" * 50)
    print(f"OFFER {offer.offer_id}")
    print("=" * 50)
    print(f"Mode:          {offer.mode.value}")
    print(f"Status:        {offer.status.value}")
    print(f"Active from:   {offer.active_from.isoformat()}")
    print(f"Active until:  {offer.active_until.isoformat() if offer.active_until else 'open-ended'}")
    policy = offer.capacity_policy
    print(f"Max total:     {policy.max_total_bookings or 'unlimited'}")
    print(f"Max per unit:  {policy.max_per_slot_or_day or 'unlimited'}")
    print(f"Max per day:   {policy.max_per_calendar_day or 'unlimited'}")
    print("=" * 50)

    bookable = 0
    for offset in range(days):
        day = start + timedelta(days=offset)
        units = service.list_availability(offer_id, day)
        if not units:
            continue
        print(f"\n{day.isoformat()} ({day.strftime('%A')})")
        print("-" * 50)
        for unit in units:
            remaining = "unlimited" if unit.remaining is None else str(unit.remaining)
            marker = "" if unit.available else "  [FULL]"
            print(f"  {unit.unit_key:<20} remaining: {remaining}{marker}")
            bookable += 1 if unit.available else 0

    print(f"\nBookable units in the next {days} day(s): {bookable}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Print remaining booking quota for an offer")
    parser.add_argument("offer_id", help="Offer identifier")
    parser.add_argument("--date", dest="start", default=None, help="First date to check (default: today)")
    parser.add_argument("--days", type=int, default=7, help="Number of days to check (default: 7)")
    args = parser.parse_args()

    start = date.today()
    if args.start:
        start = parse_iso_date(args.start)
        if start is None:
            print(f"[ERROR] Invalid date: {args.start}")
            return 1

    return check_offer_availability(args.offer_id, start, args.days)


if __name__ == "__main__":
    sys.exit(main())
