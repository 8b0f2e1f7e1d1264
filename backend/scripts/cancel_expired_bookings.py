import argparse
import logging

from studiobook.clock import utcnow
from studiobook.db.session import SessionLocal
from studiobook.policy.reminders import cancel_expired_reservations, find_expired_pending_reservations


def cancel_expired_bookings(dry_run: bool = False) -> None:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    session = SessionLocal()
    try:
        if dry_run:
            expired = find_expired_pending_reservations(session, now=utcnow())
            for reservation in expired:
                print(f"Would cancel reservation id={reservation.id} code={reservation.booking_code}")
            print(f"{len(expired)} unpaid reservation(s) past the payment window")
            return

        cancelled = cancel_expired_reservations(session, now=utcnow())
        print(f"Cancelled {len(cancelled)} unpaid reservation(s)")
    finally:
        session.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Cancel unpaid bookings past the payment window.")
    parser.add_argument("--dry-run", action="store_true", help="List expired bookings without cancelling.")
    cancel_expired_bookings(dry_run=parser.parse_args().dry_run)
