"""CSV import/export of scraped jobs.

List fields are flattened with ``;`` so a row stays one line; reading reverses
that. Known ids can be pulled from any CSV with an ``id`` column to seed the
dedup tracker of a new run.
"""
from __future__ import annotations
from pathlib import Path
from typing import Iterable, List, Optional, Sequence
import pandas as pd

from .models import JobRecord

LIST_DELIMITER = ';'
ALL_FIELDS: List[str] = list(JobRecord.model_fields)
LIST_FIELDS = ('skills_required', 'requirements', 'job_insights')
BOOL_FIELDS = ('is_promoted', 'is_reposted')


def _check_fields(fields: Optional[Sequence[str]]) -> List[str]:
    if not fields:
        return list(ALL_FIELDS)
    unknown = [f for f in fields if f not in ALL_FIELDS]
    if unknown:
        raise ValueError(f"Unknown export fields: {', '.join(unknown)}")
    return list(fields)


def jobs_to_frame(jobs: Iterable[JobRecord], fields: Optional[Sequence[str]] = None) -> pd.DataFrame:
    cols = _check_fields(fields)
    rows = []
    for j in jobs:
        data = j.model_dump(include=set(cols))
        for f in LIST_FIELDS:
            if f in data and data[f] is not None:
                data[f] = LIST_DELIMITER.join(data[f])
        rows.append(data)
    return pd.DataFrame(rows, columns=cols)


def jobs_to_csv(jobs: Iterable[JobRecord], path: Path, fields: Optional[Sequence[str]] = None) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    jobs_to_frame(jobs, fields).to_csv(path, index=False, encoding='utf-8')
    return path


def read_ids_from_csv(path: Path, column: str = 'id') -> List[str]:
    df = pd.read_csv(path, usecols=[column], dtype={column: str}, keep_default_na=False)
    return [i.strip() for i in df[column].tolist() if i and i.strip()]


def _split(value) -> Optional[List[str]]:
    if value is None or value == '':
        return None
    return [p for p in str(value).split(LIST_DELIMITER) if p]


def _as_bool(value) -> Optional[bool]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


def read_records_from_csv(path: Path) -> List[JobRecord]:
    """Load rows written by ``jobs_to_csv`` back into records; rows lacking required fields are dropped."""
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    unknown = [c for c in df.columns if c not in ALL_FIELDS]
    if unknown:
        raise ValueError(f"Unknown CSV columns: {', '.join(unknown)}")
    out: List[JobRecord] = []
    for row in df.to_dict(orient='records'):
        data = {k: (v if v != '' else None) for k, v in row.items()}
        for f in LIST_FIELDS:
            if f in row:
                data[f] = _split(row[f])
        for f in BOOL_FIELDS:
            if f in row:
                data[f] = _as_bool(row[f])
        if not all(data.get(f) for f in ('id', 'title', 'link', 'company', 'location')):
            continue
        out.append(JobRecord(**data))
    return out
