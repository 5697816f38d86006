from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Tuple

import typer

from . import config
from .document import Dataset, Document
from .editor.workspace import CanvasWorkspace
from .models import ExportMode, reset_engine
from .pipeline import jobs
from .pipeline.ingest import load_dataset
from .pipeline.package import safe_name
from .pipeline.run import ExportError, check_batch_overflow, export_pdf
from .pipeline.templates import TemplateError, parse_template, template_payload
from .storage import DocumentStore, artifact_path
from .view import html_page, render_canvas

app = typer.Typer(help="Spreadsheet-to-PDF layout export")
jobs_app = typer.Typer(help="Inspect export jobs")
templates_app = typer.Typer(help="Manage saved templates")
app.add_typer(jobs_app, name="jobs")
app.add_typer(templates_app, name="templates")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _use_out(out: Optional[Path]) -> None:
    if out:
        config.set_out_dir(out)
        reset_engine()


def _read_template(path: Path) -> Tuple[Document, str]:
    if not path.exists():
        raise typer.BadParameter(f"Template not found: {path}")
    try:
        return parse_template(path.read_text(encoding="utf-8"))
    except TemplateError as exc:
        typer.echo(f"Invalid template: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _read_data(path: Optional[Path]) -> Dataset:
    if path is None:
        return Dataset()
    try:
        return load_dataset(path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"Invalid data file: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def export(
    template: Path = typer.Argument(..., help="Template JSON file"),
    data: Path = typer.Argument(..., help="CSV or JSON data file"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
    row: int = typer.Option(1, "--row", min=1, help="Row to export (1-based)"),
    all_rows: bool = typer.Option(False, "--all", help="Export every row into a zip"),
    name: Optional[str] = typer.Option(None, "--name", help="Output file name"),
) -> None:
    _use_out(out)
    document, template_name = _read_template(template)
    dataset = _read_data(data)
    mode = ExportMode.ALL if all_rows else ExportMode.SINGLE
    if all_rows:
        for warning in check_batch_overflow(document, dataset):
            typer.echo(f"WARNING: {warning.element_name} may overflow ({warning.max_length} chars, row {warning.row_index + 1})")

    def progress(processed: int, total: int, percentage: int) -> None:
        typer.echo(f"[{percentage:3d}%] {processed}/{total}")

    try:
        job = export_pdf(
            document,
            dataset,
            file_name=name or template_name,
            mode=mode,
            row_index=row - 1,
            on_progress=progress if all_rows else None,
        )
    except ExportError as exc:
        typer.echo(f"FAILED (job {exc.job_id}): {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(f"COMPLETED (job {job.id}): {job.output_path}")


@app.command()
def preview(
    template: Path = typer.Argument(..., help="Template JSON file"),
    data: Optional[Path] = typer.Argument(None, help="CSV or JSON data file"),
    row: int = typer.Option(1, "--row", min=1, help="Sample row (1-based)"),
    html: Optional[Path] = typer.Option(None, "--html", help="Write the preview here"),
) -> None:
    document, template_name = _read_template(template)
    workspace = CanvasWorkspace(document, _read_data(data))
    workspace.preview_row = row - 1
    target = html or artifact_path(safe_name(template_name, "preview"), "preview")
    target.write_text(html_page(render_canvas(workspace), title=template_name), encoding="utf-8")
    for element_id in workspace.overflow_warnings():
        typer.echo(f"WARNING: {element_id} overflows in row {row}")
    typer.echo(f"Preview written to {target}")


@app.command()
def check(
    template: Path = typer.Argument(..., help="Template JSON file"),
    data: Path = typer.Argument(..., help="CSV or JSON data file"),
) -> None:
    document, _ = _read_template(template)
    warnings = check_batch_overflow(document, _read_data(data))
    if not warnings:
        typer.echo("OK: no overflow expected")
        return
    for warning in warnings:
        typer.echo(f"{warning.element_name}: {warning.max_length} chars in row {warning.row_index + 1}")
    raise typer.Exit(code=1)


@jobs_app.command("list")
def jobs_list(
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
    limit: int = typer.Option(20, "--limit", help="Most recent N jobs"),
) -> None:
    _use_out(out)
    found = jobs.list_jobs(limit=limit)
    if not found:
        typer.echo("No export jobs")
        return
    for job in found:
        typer.echo(f"{job.id}\t{job.status.value}\t{job.progress_percentage}%\t{job.file_name}")


@jobs_app.command("show")
def jobs_show(
    job_id: int = typer.Argument(...),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
) -> None:
    _use_out(out)
    job = jobs.get_job(job_id)
    if job is None:
        typer.echo(f"Export job not found: {job_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(job.model_dump(mode="json"), indent=2))


@jobs_app.command("watch")
def jobs_watch(
    job_id: int = typer.Argument(...),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
    interval: float = typer.Option(config.JOB_POLL_INTERVAL, "--interval", help="Seconds between polls"),
) -> None:
    _use_out(out)
    try:
        for job in jobs.watch_export_job(job_id, interval=interval):
            typer.echo(f"{job.status.value} {job.processed_rows}/{job.total_rows} ({job.progress_percentage}%)")
    except LookupError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


@templates_app.command("save")
def templates_save(
    template: Path = typer.Argument(..., help="Template JSON file"),
    name: Optional[str] = typer.Option(None, "--name"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
) -> None:
    _use_out(out)
    document, template_name = _read_template(template)
    record = DocumentStore("template").save(template_payload(document, name or template_name), name=name or template_name)
    typer.echo(record.id)


@templates_app.command("list")
def templates_list(out: Optional[Path] = typer.Option(None, "--out", help="Output directory")) -> None:
    _use_out(out)
    records = DocumentStore("template").list()
    if not records:
        typer.echo("No saved templates")
        return
    for record in records:
        typer.echo(f"{record.id}\t{record.name}\tused {record.usage_count}x")


@templates_app.command("load")
def templates_load(
    template_id: str = typer.Argument(...),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the template JSON here"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
) -> None:
    _use_out(out)
    store = DocumentStore("template")
    payload = store.load(template_id)
    if payload is None:
        typer.echo(f"Template not found: {template_id}", err=True)
        raise typer.Exit(code=1)
    store.increment_usage(template_id)
    text = json.dumps(payload, indent=2)
    if output:
        output.write_text(text, encoding="utf-8")
        typer.echo(f"Template written to {output}")
    else:
        typer.echo(text)


@templates_app.command("delete")
def templates_delete(
    template_id: str = typer.Argument(...),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
) -> None:
    _use_out(out)
    if not DocumentStore("template").delete(template_id):
        typer.echo(f"Template not found: {template_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Deleted {template_id}")


if __name__ == "__main__":
    app()
