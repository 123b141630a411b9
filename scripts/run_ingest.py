"""Ingest one faculty member's publications and print the merged result as JSON."""

import argparse
import json
import logging
import sys

from facultypubs.common.continuation import decode_continuation, encode_continuation
from facultypubs.config import settings
from facultypubs.errors import InputError
from facultypubs.models import PersonQuery
from facultypubs.orchestrator import ingest_author_publications
from facultypubs.store.sqlite_store import SqliteFacultyStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Aggregate a faculty member's publications across providers")
    parser.add_argument("name", help="Faculty member's full name")
    parser.add_argument("--affiliation", default="", help="College or institution hint")
    parser.add_argument("--department", default="", help="Department hint")
    parser.add_argument("--next", default="", help="Continuation token from a previous run")
    parser.add_argument("--limit", type=int, default=None, help="Soft cap on publications per provider")
    parser.add_argument("--db", default=settings.database_path, help="SQLite database path")
    parser.add_argument("--no-save", action="store_true", help="Skip persisting the result")
    args = parser.parse_args()

    try:
        query = PersonQuery(
            name=args.name,
            affiliation=args.affiliation,
            department=args.department,
            continuation=decode_continuation(args.next),
            limit=args.limit,
        )
        store = None if args.no_save else SqliteFacultyStore(args.db)
        result = ingest_author_publications(query, store=store, settings=settings)
    except InputError as e:
        logger.error("%s", e)
        return 2

    output = result.to_dict()
    output["next"] = encode_continuation(result.continuation) or None
    json.dump(output, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
