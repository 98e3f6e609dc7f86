from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.engine import make_url

from bootstrap import (
    MIGRATION_MARKER_KEY,
    clear_bootstrap_marker,
    has_bootstrap_marker,
    run_bootstrap_migrations,
    set_bootstrap_marker,
)
from database import DATABASE_URL

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create quiz tables and apply one-time schema fixes.")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run migrations even if the one-time marker already exists.",
    )
    parser.add_argument(
        "--clear-marker",
        action="store_true",
        help=f"Clear migration marker key `{MIGRATION_MARKER_KEY}` before running.",
    )
    parser.add_argument(
        "--clear-only",
        action="store_true",
        help="Clear marker and exit without running migrations.",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logger.info("Target database: %s", make_url(DATABASE_URL).render_as_string(hide_password=True))

    marker_present = has_bootstrap_marker()

    if args.clear_marker or args.clear_only:
        marker_present = False
        if clear_bootstrap_marker():
            logger.info("Cleared migration marker `%s`.", MIGRATION_MARKER_KEY)
        else:
            logger.info("Marker `%s` was already absent.", MIGRATION_MARKER_KEY)
        if args.clear_only:
            return 0

    if marker_present and not args.force:
        logger.info("Marker `%s` exists; nothing to do. Use --force to rerun.", MIGRATION_MARKER_KEY)
        return 0

    run_bootstrap_migrations()
    set_bootstrap_marker()
    logger.info("Quiz schema ready; marker `%s` updated.", MIGRATION_MARKER_KEY)
    return 0


if __name__ == "__main__":
    sys.exit(main())
