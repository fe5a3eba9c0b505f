"""CLI utility to check client totals against the recorded sales."""

from __future__ import annotations

import argparse
import logging
from typing import Optional

from ..database import session_scope
from ..logging_config import configure_logging
from ..services.data_consistency import DataConsistencyService

LOGGER = logging.getLogger(__name__)


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Compare each client's total spent and last purchase with the sum of its "
            "sales, suitable for cron or scheduled tasks."
        )
    )
    parser.add_argument(
        "--fix",
        action="store_true",
        help="Overwrite the stored totals with the values computed from the sales.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log every mismatch found.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "INFO")

    with session_scope() as db:
        mismatches = DataConsistencyService.client_aggregates(db)
        if not mismatches:
            LOGGER.info("Client totals match the recorded sales")
            return 0

        LOGGER.warning("%s clients have totals that differ from their sales", len(mismatches))
        for mismatch in mismatches:
            LOGGER.debug(
                "Client %s (%s): stored %s / %s, computed %s / %s",
                mismatch.client_id,
                mismatch.name,
                mismatch.stored_total,
                mismatch.stored_last_purchase,
                mismatch.computed_total,
                mismatch.computed_last_purchase,
            )

        if not args.fix:
            return 1
        repaired = DataConsistencyService.repair_client_aggregates(db, mismatches)

    LOGGER.info("Repaired %s clients", repaired)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
