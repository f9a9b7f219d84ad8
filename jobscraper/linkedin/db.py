from __future__ import annotations
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from .models import JobRecord
from .settings import SCHEMA_VERSION, SETTINGS
import json

DB_FILE = SETTINGS.db_path

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS jobs (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    title TEXT NOT NULL,
    link TEXT NOT NULL,
    company TEXT NOT NULL,
    location TEXT NOT NULL,
    description TEXT,
    company_img_link TEXT,
    company_size TEXT,
    remote TEXT,
    is_promoted INTEGER,
    company_link TEXT,
    job_insights TEXT,
    time_since_posted TEXT,
    is_reposted INTEGER,
    skills_required TEXT,
    requirements TEXT,
    apply_link TEXT
);
CREATE INDEX IF NOT EXISTS idx_jobs_title ON jobs(title);
CREATE INDEX IF NOT EXISTS idx_jobs_company ON jobs(company);
"""

META_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""

JSON_COLUMNS = ('job_insights', 'skills_required', 'requirements')
BOOL_COLUMNS = ('is_promoted', 'is_reposted')
RECORD_COLUMNS = list(JobRecord.model_fields)
COLUMNS = ['id', 'created_at', 'updated_at'] + [c for c in RECORD_COLUMNS if c != 'id']

# refreshed on conflict; a NULL in the new row keeps the stored value
_OPTIONAL_UPDATES = [c for c in RECORD_COLUMNS if c not in ('id', 'title', 'link', 'company', 'location', 'time_since_posted')]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='seconds')


class JobDB:
    def __init__(self, db_path: Path = DB_FILE):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript(SCHEMA_SQL)
            conn.execute(META_TABLE_SQL)
            cur = conn.execute("SELECT value FROM meta WHERE key='schema_version'")
            row = cur.fetchone()
            current_version = int(row[0]) if row else None
            # Lightweight migration: add columns introduced after the first release
            cur = conn.execute("PRAGMA table_info(jobs)")
            cols = [r[1] for r in cur.fetchall()]
            for col, ddl in (('company_img_link', 'TEXT'), ('is_promoted', 'INTEGER')):
                if col not in cols:
                    conn.execute(f"ALTER TABLE jobs ADD COLUMN {col} {ddl}")
            if current_version != SCHEMA_VERSION:
                conn.execute("INSERT INTO meta(key,value) VALUES('schema_version', ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value", (str(SCHEMA_VERSION),))

    def close(self):
        # no persistent connection; kept for context manager symmetry
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def upsert_jobs(self, jobs: Iterable[JobRecord]) -> int:
        """Insert new jobs, refresh known ones.

        On conflict ``created_at`` and ``time_since_posted`` keep their first
        seen values and optional fields missing from the new scrape keep the
        stored value.
        """
        now = _now()
        rows = [self._job_to_row(j, now) for j in jobs]
        if not rows:
            return 0
        placeholders = ','.join('?' for _ in COLUMNS)
        updates = ',\n'.join(
            ["updated_at=excluded.updated_at", "title=excluded.title", "link=excluded.link",
             "company=excluded.company", "location=excluded.location"]
            + [f"{c}=COALESCE(excluded.{c}, jobs.{c})" for c in _OPTIONAL_UPDATES]
            + ["time_since_posted=COALESCE(jobs.time_since_posted, excluded.time_since_posted)"]
        )
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(f"""
                INSERT INTO jobs ({', '.join(COLUMNS)}) VALUES ({placeholders})
                ON CONFLICT(id) DO UPDATE SET
                    {updates}
            """, rows)
        return len(rows)

    def upsert_job(self, job: JobRecord) -> None:
        self.upsert_jobs([job])

    def fetch_all(self) -> List[JobRecord]:
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.execute("SELECT * FROM jobs ORDER BY created_at, id")
            cols = [c[0] for c in cur.description]
            return [self._row_to_job(dict(zip(cols, r))) for r in cur.fetchall()]

    def fetch_by_id(self, job_id: str) -> JobRecord | None:
        with sqlite3.connect(self.db_path) as conn:
            cur = conn.execute("SELECT * FROM jobs WHERE id=?", (job_id,))
            row = cur.fetchone()
            if not row:
                return None
            cols = [c[0] for c in cur.description]
            return self._row_to_job(dict(zip(cols, row)))

    def fetch_ids(self) -> List[str]:
        with sqlite3.connect(self.db_path) as conn:
            return [r[0] for r in conn.execute("SELECT id FROM jobs")]

    def fetch_timestamps(self, job_id: str) -> Tuple[str, str] | None:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute("SELECT created_at, updated_at FROM jobs WHERE id=?", (job_id,)).fetchone()
            return (row[0], row[1]) if row else None

    def count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]

    def search(self, q: Optional[str] = None, company: Optional[str] = None, location: Optional[str] = None,
               remote: Optional[str] = None, limit: int = 50, offset: int = 0) -> Tuple[int, List[JobRecord]]:
        """Filtered page of jobs (newest first) plus the total match count."""
        where, params = [], []
        if q:
            where.append("(title LIKE ? OR company LIKE ? OR description LIKE ?)")
            params += [f"%{q}%"] * 3
        if company:
            where.append("company LIKE ?")
            params.append(f"%{company}%")
        if location:
            where.append("location LIKE ?")
            params.append(f"%{location}%")
        if remote:
            where.append("LOWER(remote) = LOWER(?)")
            params.append(remote)
        clause = f"WHERE {' AND '.join(where)}" if where else ''
        with sqlite3.connect(self.db_path) as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM jobs {clause}", params).fetchone()[0]
            cur = conn.execute(
                f"SELECT * FROM jobs {clause} ORDER BY updated_at DESC, id LIMIT ? OFFSET ?",
                params + [limit, offset],
            )
            cols = [c[0] for c in cur.description]
            return total, [self._row_to_job(dict(zip(cols, r))) for r in cur.fetchall()]

    def _job_to_row(self, j: JobRecord, now: str):
        data = j.model_dump()
        row = []
        for col in COLUMNS:
            if col in ('created_at', 'updated_at'):
                row.append(now)
                continue
            v = data[col]
            if col in JSON_COLUMNS and v is not None:
                v = json.dumps(v, ensure_ascii=False)
            elif col in BOOL_COLUMNS and v is not None:
                v = int(v)
            row.append(v)
        return row

    def _row_to_job(self, data: dict) -> JobRecord:
        out = {k: data.get(k) for k in RECORD_COLUMNS}
        for col in JSON_COLUMNS:
            if out[col]:
                try:
                    out[col] = json.loads(out[col])
                except json.JSONDecodeError:
                    out[col] = [out[col]]
        for col in BOOL_COLUMNS:
            if out[col] is not None:
                out[col] = bool(out[col])
        return JobRecord(**out)
