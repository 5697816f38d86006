from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..document import Dataset, Document
from ..models import ExportJob, ExportMode
from ..overflow import find_max_data_length
from ..storage import artifact_path
from . import jobs
from .package import BatchArchive, row_file_name, safe_name
from .rasterize import RasterSurface, page_pdf


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, int], None]


class ExportError(RuntimeError):
    def __init__(self, message: str, job_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.job_id = job_id


@dataclass(frozen=True)
class OverflowWarning:
    element_id: str
    element_name: str
    max_length: int
    row_index: int


def check_batch_overflow(document: Document, dataset: Dataset) -> List[OverflowWarning]:
    """Bound text elements whose longest value across the dataset would overflow."""
    warnings: List[OverflowWarning] = []
    for element in document.elements:
        if element.type != "text" or not element.is_bound or element.hidden:
            continue
        worst = find_max_data_length(element, dataset.rows)
        if worst.will_overflow:
            warnings.append(
                OverflowWarning(
                    element_id=element.id,
                    element_name=element.name or element.id,
                    max_length=worst.max_length,
                    row_index=worst.max_row,
                )
            )
    for warning in warnings:
        logger.warning(
            "Element %s may overflow (%d chars in row %d)",
            warning.element_name,
            warning.max_length,
            warning.row_index + 1,
        )
    return warnings


def _write_error(name: str, message: str, out_dir: Path | None) -> None:
    error_path = artifact_path(name, "error", base_dir=out_dir)
    error_path.write_text(message, encoding="utf-8")


def _rows_for(mode: ExportMode, rows: List[Dict[str, Any]], row_index: int) -> List[Dict[str, Any]]:
    if mode == ExportMode.ALL:
        if not rows:
            raise ValueError("No data rows to export")
        return rows
    if not rows:
        return [{}]
    if not 0 <= row_index < len(rows):
        raise ValueError(f"Row {row_index + 1} is out of range (1-{len(rows)})")
    return [rows[row_index]]


def export_pdf(
    document: Document,
    dataset: Dataset | None = None,
    file_name: str = "export",
    mode: ExportMode = ExportMode.SINGLE,
    row_index: int = 0,
    job_id: Optional[int] = None,
    on_progress: Optional[ProgressCallback] = None,
    images: Mapping[str, bytes] | None = None,
    out_dir: Path | None = None,
    session_id: str = "default",
) -> ExportJob:
    """
    Render one row to a PDF or every row into a zip of PDFs.

    The document and rows are deep-copied first, so edits made while the
    export runs never leak into it. Progress is recorded on the job after
    every row. On any failure the job is marked failed, partial output is
    removed and an ``ExportError`` is raised.
    """
    document = copy.deepcopy(document)
    rows = copy.deepcopy(dataset.rows) if dataset is not None else []
    name = safe_name(file_name, "export")

    if job_id is None:
        try:
            job_id = jobs.create_job(name, mode, total_rows=len(rows), session_id=session_id).id
        except SQLAlchemyError as exc:
            logger.exception("Could not create export job for %s", name)
            raise ExportError(str(exc)) from exc
    assert job_id is not None

    target = artifact_path(name, "bundle" if mode == ExportMode.ALL else "pdf", base_dir=out_dir)
    partial = target.with_name(target.name + ".tmp")
    surface = RasterSurface(document.page)
    try:
        selected = _rows_for(mode, rows, row_index)
        total = len(selected)
        jobs.start_job(job_id, total)

        if mode == ExportMode.ALL:
            with BatchArchive(target) as archive:
                for index, row in enumerate(selected):
                    png = surface.render_row(document, row, images)
                    archive.add(row_file_name(row, index), page_pdf(png, document.page))
                    _report(job_id, index + 1, total, on_progress)
        else:
            png = surface.render_row(document, selected[0], images)
            partial.write_bytes(page_pdf(png, document.page, title=name))
            partial.replace(target)
            _report(job_id, 1, total, on_progress)
    except Exception as exc:
        logger.exception("Export failed for %s", name)
        partial.unlink(missing_ok=True)
        message = str(exc) or exc.__class__.__name__
        jobs.fail_job(job_id, message)
        _write_error(name, message, out_dir)
        raise ExportError(message, job_id=job_id) from exc
    finally:
        surface.close()

    return jobs.complete_job(job_id, str(target), target.stat().st_size)


def _report(job_id: int, processed: int, total: int, on_progress: Optional[ProgressCallback]) -> None:
    job = jobs.record_progress(job_id, processed, total)
    if on_progress is not None:
        on_progress(processed, total, job.progress_percentage)


def export_all(document: Document, dataset: Dataset, file_name: str = "export", **kwargs: Any) -> ExportJob:
    return export_pdf(document, dataset, file_name, mode=ExportMode.ALL, **kwargs)
