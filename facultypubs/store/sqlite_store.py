"""SQLite-backed faculty/publication store and read queries.

Implements the persistence contract the orchestrator consumes:
faculty are unique on (full_name, college, department), publications
are upserted on (faculty_id, natural_key) and metrics are one row per
faculty, superseded on every run.
"""

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

import pandas as pd

from facultypubs.errors import InputError, PersistenceError
from facultypubs.models import CanonicalPublication, MetricsSnapshot

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS faculty (
    id TEXT PRIMARY KEY,
    full_name TEXT NOT NULL,
    college TEXT NOT NULL,
    department TEXT NOT NULL,
    external_ids TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (full_name, college, department)
);
CREATE TABLE IF NOT EXISTS publication (
    id TEXT PRIMARY KEY,
    faculty_id TEXT NOT NULL REFERENCES faculty(id) ON DELETE CASCADE,
    natural_key TEXT NOT NULL,
    title TEXT NOT NULL,
    year INTEGER,
    venue TEXT,
    doi TEXT,
    url TEXT,
    abstract TEXT,
    type TEXT NOT NULL DEFAULT 'other',
    authors TEXT NOT NULL DEFAULT '[]',
    external_ids TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (faculty_id, natural_key)
);
CREATE INDEX IF NOT EXISTS publication_faculty_year_idx ON publication (faculty_id, year);
CREATE TABLE IF NOT EXISTS faculty_metrics (
    faculty_id TEXT PRIMARY KEY REFERENCES faculty(id) ON DELETE CASCADE,
    total_publications INTEGER NOT NULL DEFAULT 0,
    total_citations INTEGER,
    h_index INTEGER,
    last_updated TEXT NOT NULL
);
"""

FACULTY_LIMIT = 100
PUBLICATION_LIMIT = 5000


@dataclass(frozen=True)
class UpsertResult:
    faculty_id: str
    saved_publication_count: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SqliteFacultyStore:
    """Faculty store over a single SQLite file (or ``:memory:``)."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._memory_conn = sqlite3.connect(db_path, check_same_thread=False) if db_path == ":memory:" else None
        self.init_db()

    def get_conn(self) -> sqlite3.Connection:
        # New connection per call except for in-memory databases, which would vanish
        conn = self._memory_conn or sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def _close(self, conn: sqlite3.Connection) -> None:
        if conn is not self._memory_conn:
            conn.close()

    def init_db(self) -> None:
        conn = self.get_conn()
        try:
            conn.executescript(SCHEMA)
        finally:
            self._close(conn)

    # ----- writes -----

    def upsert_faculty_and_publications(
        self,
        name: str,
        college: str,
        department: str,
        external_ids: dict[str, str] | None = None,
        publications: Sequence[CanonicalPublication] = (),
        metrics: MetricsSnapshot | None = None,
    ) -> UpsertResult:
        """Save a faculty member with their publications and metrics.

        Idempotent: publications are matched on their natural key, so
        repeated runs with overlapping sets update rather than duplicate.
        """
        logger.info("[DB] Saving faculty: %s from %s/%s", name, college, department)
        conn = self.get_conn()
        try:
            with conn:
                faculty_id = self._upsert_faculty(conn, name, college, department, external_ids or {})

            saved = 0
            for pub in publications:
                try:
                    with conn:
                        self._upsert_publication(conn, faculty_id, pub)
                    saved += 1
                except sqlite3.Error as e:
                    logger.error("[DB] Error saving publication '%s': %s", pub.title[:50], e)

            if metrics is not None:
                with conn:
                    self._upsert_metrics(conn, faculty_id, metrics)
        except sqlite3.Error as e:
            raise PersistenceError(f"Could not save faculty '{name}': {e}") from e
        finally:
            self._close(conn)

        logger.info("[DB] Faculty %s saved: %d publications", faculty_id, saved)
        return UpsertResult(faculty_id=faculty_id, saved_publication_count=saved)

    def _upsert_faculty(self, conn, name, college, department, external_ids) -> str:
        now = _now()
        conn.execute(
            """
            INSERT INTO faculty (id, full_name, college, department, external_ids, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (full_name, college, department)
            DO UPDATE SET external_ids = excluded.external_ids, updated_at = excluded.updated_at
            """,
            (uuid.uuid4().hex, name, college, department, json.dumps(external_ids), now, now),
        )
        row = conn.execute(
            "SELECT id FROM faculty WHERE full_name = ? AND college = ? AND department = ?",
            (name, college, department),
        ).fetchone()
        return row["id"]

    def _upsert_publication(self, conn, faculty_id: str, pub: CanonicalPublication) -> None:
        now = _now()
        conn.execute(
            """
            INSERT INTO publication (id, faculty_id, natural_key, title, year, venue, doi, url,
                                     abstract, type, authors, external_ids, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (faculty_id, natural_key) DO UPDATE SET
                title = excluded.title,
                year = excluded.year,
                venue = COALESCE(excluded.venue, publication.venue),
                doi = COALESCE(excluded.doi, publication.doi),
                url = COALESCE(excluded.url, publication.url),
                abstract = COALESCE(excluded.abstract, publication.abstract),
                type = excluded.type,
                authors = excluded.authors,
                external_ids = excluded.external_ids,
                updated_at = excluded.updated_at
            """,
            (
                uuid.uuid4().hex, faculty_id, pub.key, pub.title, pub.year, pub.venue, pub.doi,
                pub.url, pub.abstract, pub.type, json.dumps(list(pub.author_names)),
                json.dumps(pub.external_ids), now, now,
            ),
        )

    def _upsert_metrics(self, conn, faculty_id: str, metrics: MetricsSnapshot) -> None:
        conn.execute(
            """
            INSERT INTO faculty_metrics (faculty_id, total_publications, total_citations, h_index, last_updated)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (faculty_id) DO UPDATE SET
                total_publications = excluded.total_publications,
                total_citations = excluded.total_citations,
                h_index = excluded.h_index,
                last_updated = excluded.last_updated
            """,
            (
                faculty_id, metrics.total_publications, metrics.total_citations,
                metrics.h_index, metrics.last_updated.isoformat(),
            ),
        )

    # ----- reads -----

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        conn = self.get_conn()
        try:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]
        except sqlite3.Error as e:
            raise PersistenceError(f"Query failed: {e}") from e
        finally:
            self._close(conn)

    @staticmethod
    def _decode(row: dict[str, Any]) -> dict[str, Any]:
        for column in ("external_ids", "authors"):
            if column in row and isinstance(row[column], str):
                row[column] = json.loads(row[column])
        return row

    def _metrics_for(self, faculty_id: str) -> dict[str, Any] | None:
        rows = self._query(
            "SELECT total_publications, total_citations, h_index, last_updated "
            "FROM faculty_metrics WHERE faculty_id = ?",
            (faculty_id,),
        )
        return rows[0] if rows else None

    def get_faculty(self, faculty_id: str) -> dict[str, Any] | None:
        """Faculty with publications (newest first) and metrics, or None."""
        rows = self._query("SELECT * FROM faculty WHERE id = ?", (faculty_id,))
        if not rows:
            return None
        faculty = self._decode(rows[0])
        faculty["publications"] = self.faculty_publications(faculty_id)
        faculty["metrics"] = self._metrics_for(faculty_id)
        return faculty

    def list_faculty(
        self,
        q: str | None = None,
        department: str | None = None,
        college: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Case-insensitive search over faculty, ordered by name."""
        clauses, params = [], []
        if q:
            clauses.append("(f.full_name LIKE ? OR f.department LIKE ? OR f.college LIKE ?)")
            params.extend([f"%{q.strip()}%"] * 3)
        if department:
            clauses.append("f.department LIKE ?")
            params.append(f"%{department.strip()}%")
        if college:
            clauses.append("f.college LIKE ?")
            params.append(f"%{college.strip()}%")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(max(1, min(int(limit), FACULTY_LIMIT)))

        rows = self._query(
            f"""
            SELECT f.*, m.total_publications, m.total_citations, m.h_index, m.last_updated,
                   (SELECT COUNT(*) FROM publication p WHERE p.faculty_id = f.id) AS publication_count
            FROM faculty f LEFT JOIN faculty_metrics m ON m.faculty_id = f.id
            {where}
            ORDER BY f.full_name ASC
            LIMIT ?
            """,
            params,
        )
        return [self._decode(row) for row in rows]

    def faculty_publications(
        self,
        faculty_id: str,
        year_from: int | None = None,
        year_to: int | None = None,
        limit: int = 1000,
    ) -> list[dict[str, Any]]:
        clauses, params = ["faculty_id = ?"], [faculty_id]
        if year_from is not None:
            clauses.append("year >= ?")
            params.append(year_from)
        if year_to is not None:
            clauses.append("year <= ?")
            params.append(year_to)
        params.append(max(1, min(int(limit), PUBLICATION_LIMIT)))
        rows = self._query(
            f"SELECT * FROM publication WHERE {' AND '.join(clauses)} "
            "ORDER BY year IS NULL, year DESC, title ASC LIMIT ?",
            params,
        )
        return [self._decode(row) for row in rows]

    def department_summary(self, department: str) -> dict[str, Any]:
        """Aggregate metrics and publication years across a department."""
        if not department or not department.strip():
            raise InputError("department is required")
        department = department.strip()

        df_faculty = pd.DataFrame(self._query(
            """
            SELECT f.id, m.total_publications, m.total_citations, m.h_index
            FROM faculty f LEFT JOIN faculty_metrics m ON m.faculty_id = f.id
            WHERE f.department = ?
            """,
            (department,),
        ), columns=["id", "total_publications", "total_citations", "h_index"])
        for column in ("total_publications", "total_citations", "h_index"):
            df_faculty[column] = pd.to_numeric(df_faculty[column], errors="coerce").fillna(0)
        df_years = pd.DataFrame(self._query(
            """
            SELECT p.year FROM publication p JOIN faculty f ON f.id = p.faculty_id
            WHERE f.department = ? AND p.year IS NOT NULL
            """,
            (department,),
        ), columns=["year"])

        total_faculty = len(df_faculty)
        by_year = df_years.groupby("year").size() if not df_years.empty else pd.Series(dtype=int)
        return {
            "department": department,
            "total_faculty": total_faculty,
            "total_publications": int(df_faculty["total_publications"].sum()),
            "total_citations": int(df_faculty["total_citations"].sum()),
            "average_h_index": (
                round(float(df_faculty["h_index"].mean()), 1) if total_faculty else 0.0
            ),
            "publications_by_year": {int(year): int(count) for year, count in by_year.items()},
            "year_range": (
                {"from": int(df_years["year"].min()), "to": int(df_years["year"].max())}
                if not df_years.empty else None
            ),
        }
