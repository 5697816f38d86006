from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Field, SQLModel, Session, create_engine

from . import config


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}


class ExportMode(str, Enum):
    SINGLE = "single"
    ALL = "all"


class ExportJob(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(default="default", index=True)
    file_name: str
    export_mode: ExportMode = Field(default=ExportMode.SINGLE)
    total_rows: int = 0
    processed_rows: int = 0
    progress_percentage: int = 0
    status: JobStatus = Field(default=JobStatus.PENDING)
    output_path: Optional[str] = None
    error_message: Optional[str] = None
    file_size_bytes: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class SavedDocument(SQLModel, table=True):
    id: str = Field(primary_key=True)
    kind: str = Field(default="session", index=True)
    name: str = ""
    payload: str
    usage_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class KeyValue(SQLModel, table=True):
    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=utcnow)


engine = create_engine(f"sqlite:///{config.DB_PATH}")


def reset_engine() -> None:
    global engine
    engine = create_engine(f"sqlite:///{config.DB_PATH}")


def init_db() -> None:
    config.OUT_DIR.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)
    _migrate_db()


# Columns added after the first release; older databases get them on startup.
ADDED_COLUMNS: Dict[str, Dict[str, str]] = {
    "exportjob": {
        "session_id": "VARCHAR DEFAULT 'default'",
        "file_size_bytes": "INTEGER",
        "started_at": "DATETIME",
    },
    "saveddocument": {
        "usage_count": "INTEGER DEFAULT 0",
    },
}


def _migrate_db() -> None:
    """Bring an existing database schema up to the current models."""
    try:
        inspector = inspect(engine)
        tables = set(inspector.get_table_names())
        for table, added in ADDED_COLUMNS.items():
            if table not in tables:
                continue
            columns = {col["name"] for col in inspector.get_columns(table)}
            for name, ddl in added.items():
                if name in columns:
                    continue
                with engine.begin() as conn:
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {name} {ddl}"))
                logger.info("Added column %s.%s", table, name)
    except SQLAlchemyError:
        logger.warning("Schema migration skipped", exc_info=True)


def get_session() -> Session:
    return Session(engine, expire_on_commit=False)
