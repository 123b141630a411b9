"""Batch ingestion of a faculty roster spreadsheet.

Processes a CSV or Excel roster one faculty member at a time, writing the
outcome back into the sheet. Progress is saved incrementally so an
interrupted batch can be re-run: rows holding a continuation token resume
where they stopped, rows already complete are skipped.
"""

import logging
from pathlib import Path

import pandas as pd

from facultypubs.common.continuation import decode_continuation, encode_continuation
from facultypubs.config import Settings
from facultypubs.errors import InputError
from facultypubs.models import PersonQuery
from facultypubs.orchestrator import ingest_author_publications

logger = logging.getLogger(__name__)

SAVE_INTERVAL = 10
OUTPUT_COLUMNS = ["faculty_id", "publication_count", "status", "next"]


def _cell(row: pd.Series, column: str) -> str:
    value = row.get(column)
    return "" if value is None or pd.isna(value) else str(value).strip()


def read_roster(path: Path) -> pd.DataFrame:
    if path.suffix.lower() in (".xlsx", ".xls"):
        return pd.read_excel(path)
    return pd.read_csv(path)


def write_roster(df: pd.DataFrame, path: Path) -> None:
    if path.suffix.lower() in (".xlsx", ".xls"):
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)


def run_roster(input_path: str, store=None, settings: Settings | None = None, adapters=None) -> pd.DataFrame:
    """Ingest every faculty member listed in a roster file.

    The roster needs a ``name`` column; ``affiliation`` and ``department``
    are optional. Returns the updated DataFrame (also written back to disk).
    """
    path = Path(input_path)
    if not path.exists():
        raise InputError(f"Roster file not found: {input_path}")

    df = read_roster(path)
    if "name" not in df.columns:
        raise InputError(f"Roster {input_path} has no 'name' column")
    for col in OUTPUT_COLUMNS:
        if col not in df.columns:
            df[col] = None
        df[col] = df[col].astype(object)

    rows_processed = 0
    for index, row in df.iterrows():
        name = _cell(row, "name")
        if not name:
            logger.warning("Row %s has no name, skipping", index)
            continue
        token = _cell(row, "next")
        if _cell(row, "status") and not token:
            continue

        try:
            continuation = decode_continuation(token) if token else None
        except InputError as e:
            logger.warning("Row %s (%s): discarding bad continuation token: %s", index, name, e)
            continuation = None

        query = PersonQuery(
            name=name,
            affiliation=_cell(row, "affiliation"),
            department=_cell(row, "department"),
            continuation=continuation,
        )
        result = ingest_author_publications(query, adapters=adapters, store=store, settings=settings)

        df.at[index, "faculty_id"] = result.faculty_id
        # A resumed row only fetched the remaining pages
        previous = pd.to_numeric(row.get("publication_count"), errors="coerce") if continuation else None
        df.at[index, "publication_count"] = (int(previous) if pd.notna(previous) else 0) + len(result.publications)
        df.at[index, "status"] = "partial" if result.continuation else "complete"
        df.at[index, "next"] = encode_continuation(result.continuation) or None
        logger.info("Ingested %s: %d publications (%s)", name, df.at[index, "publication_count"], df.at[index, "status"])

        rows_processed += 1
        if rows_processed % SAVE_INTERVAL == 0:
            write_roster(df, path)
            logger.info("Progress saved at row %s", index)

    write_roster(df, path)
    logger.info("Roster complete. Results saved to %s", input_path)
    return df
