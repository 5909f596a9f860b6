"""Print the resolved slots of a professional for one date.

Usage:
    python -m backend.print_slots <professional_id> <YYYY-MM-DD> [--duration MINUTES]
"""
import argparse
import logging
import sys
from datetime import date, datetime

from sqlalchemy.exc import SQLAlchemyError

from backend.database import SessionLocal
from backend.scheduling.errors import ProviderNotFoundError
from backend.scheduling.slots import format_clock
from backend.scheduling.store import list_slots

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('professional_id')
    parser.add_argument('date', type=date.fromisoformat)
    parser.add_argument('--duration', type=int, default=None, help='override the session duration in minutes')
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')
    args = build_parser().parse_args(argv)

    db = SessionLocal()
    try:
        slots = list_slots(db, args.professional_id, args.date, datetime.now(), duration_minutes=args.duration)
    except ProviderNotFoundError as exc:
        print(exc, file=sys.stderr)
        return 1
    except SQLAlchemyError:
        logger.exception('Could not read slots. Check DATABASE_URL and Postgres credentials.')
        return 2
    finally:
        db.close()

    if not slots:
        print(f'No availability on {args.date.isoformat()}.')
        return 0

    for slot in slots:
        print(f'{format_clock(slot.start_time)}  {slot.status}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
