"""Run batch publication ingestion for every faculty member in a roster file."""

import argparse
import logging

from facultypubs.config import settings
from facultypubs.roster import run_roster
from facultypubs.store.sqlite_store import SqliteFacultyStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(description="Batch faculty publication ingestion")
    parser.add_argument("--input", default="faculty_roster.csv",
                        help="CSV or Excel roster with name, affiliation, department columns")
    parser.add_argument("--db", default=settings.database_path, help="SQLite database path")
    args = parser.parse_args()

    logger.info("Starting roster ingestion with input: %s", args.input)
    run_roster(args.input, store=SqliteFacultyStore(args.db), settings=settings)


if __name__ == "__main__":
    main()
