"""
Export job records.

A job row is created before rendering starts and updated after every row,
so another process (or ``sheetpress jobs watch``) can follow progress by
polling the database.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterator, List, Optional

from sqlmodel import select

from .. import config
from ..models import TERMINAL_STATUSES, ExportJob, ExportMode, JobStatus, get_session, init_db, utcnow


logger = logging.getLogger(__name__)


def create_job(
    file_name: str,
    export_mode: ExportMode = ExportMode.SINGLE,
    total_rows: int = 0,
    session_id: str = "default",
) -> ExportJob:
    init_db()
    job = ExportJob(
        file_name=file_name,
        export_mode=export_mode,
        total_rows=total_rows,
        session_id=session_id,
        status=JobStatus.PENDING,
    )
    with get_session() as session:
        session.add(job)
        session.commit()
        session.refresh(job)
    logger.info("Created export job %s (%s, %d rows)", job.id, export_mode.value, total_rows)
    return job


def get_job(job_id: int) -> Optional[ExportJob]:
    init_db()
    with get_session() as session:
        return session.get(ExportJob, job_id)


def update_job(job_id: int, **changes: Any) -> ExportJob:
    init_db()
    with get_session() as session:
        job = session.get(ExportJob, job_id)
        if job is None:
            raise LookupError(f"Export job not found: {job_id}")
        previous = job.status
        for key, value in changes.items():
            setattr(job, key, value)
        session.add(job)
        session.commit()
        session.refresh(job)
    if job.status != previous:
        logger.info("Export job %s: %s -> %s", job_id, previous.value, job.status.value)
    return job


def start_job(job_id: int, total_rows: int) -> ExportJob:
    return update_job(
        job_id,
        status=JobStatus.PROCESSING,
        total_rows=total_rows,
        processed_rows=0,
        progress_percentage=0,
        started_at=utcnow(),
    )


def record_progress(job_id: int, processed: int, total: int) -> ExportJob:
    percentage = round(processed / total * 100) if total else 100
    return update_job(job_id, processed_rows=processed, progress_percentage=percentage)


def complete_job(job_id: int, output_path: str, file_size_bytes: int) -> ExportJob:
    return update_job(
        job_id,
        status=JobStatus.COMPLETED,
        progress_percentage=100,
        output_path=output_path,
        file_size_bytes=file_size_bytes,
        completed_at=utcnow(),
    )


def fail_job(job_id: int, message: str) -> ExportJob:
    return update_job(job_id, status=JobStatus.FAILED, error_message=message, completed_at=utcnow())


def cancel_job(job_id: int) -> ExportJob:
    job = get_job(job_id)
    if job is None:
        raise LookupError(f"Export job not found: {job_id}")
    if job.status in TERMINAL_STATUSES:
        return job
    return update_job(job_id, status=JobStatus.CANCELLED, completed_at=utcnow())


def list_jobs(session_id: str | None = None, limit: int = 20) -> List[ExportJob]:
    init_db()
    with get_session() as session:
        statement = select(ExportJob)
        if session_id:
            statement = statement.where(ExportJob.session_id == session_id)
        statement = statement.order_by(ExportJob.created_at.desc(), ExportJob.id.desc()).limit(limit)
        return list(session.exec(statement))


def delete_job(job_id: int) -> bool:
    init_db()
    with get_session() as session:
        job = session.get(ExportJob, job_id)
        if job is None:
            return False
        session.delete(job)
        session.commit()
    return True


def watch_export_job(
    job_id: int,
    interval: float = config.JOB_POLL_INTERVAL,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[ExportJob]:
    """Poll a job at a fixed interval, yielding each reading until it reaches a terminal status."""
    while True:
        job = get_job(job_id)
        if job is None:
            raise LookupError(f"Export job not found: {job_id}")
        yield job
        if job.status in TERMINAL_STATUSES:
            return
        sleep(interval)
