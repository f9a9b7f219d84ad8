from __future__ import annotations
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pathlib import Path
from typing import Optional
import io
import os

# Internal imports
from jobscraper.linkedin.db import DB_FILE, JobDB
from jobscraper.linkedin.exporter import jobs_to_frame

app = FastAPI(title="LinkedIn Jobs Browser")

# Local dev frontends only
origins = [
    "http://127.0.0.1:3000",
    "http://localhost:3000",
    "http://127.0.0.1:8000",
    "http://localhost:8000",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

MAX_PAGE = 200


def get_db() -> JobDB:
    return JobDB(Path(os.getenv('JOBSCRAPER_DB', str(DB_FILE))))


@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/api/jobs")
def list_jobs(
    q: Optional[str] = None,
    company: Optional[str] = None,
    location: Optional[str] = None,
    remote: Optional[str] = None,
    limit: int = Query(50, ge=1, le=MAX_PAGE),
    offset: int = Query(0, ge=0),
):
    total, items = get_db().search(q=q, company=company, location=location, remote=remote, limit=limit, offset=offset)
    return {"total": total, "limit": limit, "offset": offset, "items": [j.model_dump() for j in items]}


@app.get("/api/jobs.csv")
def export_jobs_csv():
    df = jobs_to_frame(get_db().fetch_all())
    buf = io.StringIO()
    df.to_csv(buf, index=False)
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=jobs.csv"},
    )


@app.get("/api/jobs/{job_id}")
def get_job(job_id: str):
    job = get_db().fetch_by_id(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job.model_dump()
