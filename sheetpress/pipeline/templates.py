"""
Template and session files.

Templates use the ``{"version": "1.0", "template": {...}}`` envelope. A
session snapshot additionally carries the dataset and the preview row.
Parsing fails closed: any problem raises ``TemplateError`` and nothing is
returned, so a caller never loads half a document.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from .. import config
from ..document import Dataset, Document
from ..models import utcnow


logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"


class TemplateError(ValueError):
    pass


def _page_size_name(document: Document) -> str:
    dims = sorted((document.page.width, document.page.height))
    for name, size in config.PAGE_SIZES.items():
        if sorted(size) == dims:
            return name
    return "Custom"


def template_payload(
    document: Document,
    name: str,
    description: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> Dict[str, Any]:
    body = document.to_dict()
    body.update(
        {
            "name": name,
            "description": description,
            "tags": list(tags or []),
            "pageSize": _page_size_name(document),
        }
    )
    return {"version": FORMAT_VERSION, "template": body, "exportedAt": utcnow().isoformat().replace("+00:00", "Z")}


def dump_template(
    document: Document,
    name: str,
    description: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> str:
    return json.dumps(template_payload(document, name, description, tags), indent=2)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise TemplateError(f"Invalid JSON format: {exc.msg} (line {exc.lineno})") from exc


def document_from_payload(body: Any) -> Document:
    if not isinstance(body, dict):
        raise TemplateError("Invalid template file format")
    if not isinstance(body.get("elements", []), list) or not isinstance(body.get("groups", []), list):
        raise TemplateError("Template elements and groups must be lists")
    try:
        return Document.from_dict(body)
    except (TypeError, ValueError, KeyError) as exc:
        raise TemplateError(f"Invalid template: {exc}") from exc


def parse_template(text: str) -> Tuple[Document, str]:
    """Parse a template file; returns (document, name)."""
    data = _loads(text)
    if not isinstance(data, dict) or "template" not in data:
        raise TemplateError("Invalid template file format")
    body = data["template"]
    document = document_from_payload(body)
    name = body.get("name") or "Imported Template"
    logger.info("Parsed template %r with %d elements", name, len(document.elements))
    return document, str(name)


def dump_session(document: Document, dataset: Dataset, preview_row: int = 0, name: str = "") -> str:
    payload = {
        "version": FORMAT_VERSION,
        "name": name,
        "document": document.to_dict(),
        "dataset": {"headers": list(dataset.headers), "rows": list(dataset.rows)},
        "previewRow": preview_row,
        "savedAt": utcnow().isoformat().replace("+00:00", "Z"),
    }
    return json.dumps(payload, indent=2, default=str)


def parse_session(text: str) -> Tuple[Document, Dataset, int]:
    """Parse a session snapshot; returns (document, dataset, preview_row)."""
    data = _loads(text)
    if not isinstance(data, dict) or "document" not in data:
        raise TemplateError("Invalid session file format")
    document = document_from_payload(data["document"])
    raw = data.get("dataset") or {}
    rows = raw.get("rows", []) if isinstance(raw, dict) else None
    if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
        raise TemplateError("Session dataset rows must be a list of objects")
    headers = raw.get("headers") or []
    dataset = Dataset(headers=list(headers), rows=rows) if headers else Dataset.from_rows(rows)
    preview_row = data.get("previewRow", 0)
    if not isinstance(preview_row, int) or preview_row < 0:
        raise TemplateError("Session previewRow must be a non-negative integer")
    return document, dataset, preview_row
