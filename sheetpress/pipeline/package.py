from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from slugify import slugify


logger = logging.getLogger(__name__)

NAME_FIELDS = ("Name", "name")


def safe_name(text: str, fallback: str) -> str:
    """
    Lower-case ``[a-z0-9_]`` file stem; ``fallback`` when nothing survives.

    Accented letters are transliterated and runs of other characters collapse
    to a single underscore, so "Café  Menu" becomes ``cafe_menu`` rather than
    one underscore per dropped character.
    """
    slug = slugify(str(text), separator="_")
    slug = re.sub(r"[^a-z0-9_]+", "_", slug.lower()).strip("_")
    return slug or fallback


def row_file_name(row: Dict[str, Any], index: int) -> str:
    """File stem for the 0-based ``index``-th row: its Name column, else record_{n}."""
    fallback = f"record_{index + 1}"
    for key in NAME_FIELDS:
        value = row.get(key)
        if value is not None and str(value).strip():
            return safe_name(str(value), fallback)
    return fallback


class BatchArchive:
    """
    Zip of per-row PDFs, written to a temp file and moved into place on success.

    Used as a context manager; an exception inside the block discards the
    temp file so no partial archive is ever left at ``path``.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.temp_path = path.with_name(path.name + ".tmp")
        self.names: List[str] = []
        self._zip: Optional[zipfile.ZipFile] = None

    def __enter__(self) -> "BatchArchive":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._zip = zipfile.ZipFile(self.temp_path, "w", compression=zipfile.ZIP_DEFLATED)
        return self

    def unique_name(self, stem: str, suffix: str = ".pdf") -> str:
        name = f"{stem}{suffix}"
        counter = 2
        while name in self.names:
            name = f"{stem}_{counter}{suffix}"
            counter += 1
        return name

    def add(self, stem: str, data: bytes, suffix: str = ".pdf") -> str:
        assert self._zip is not None, "BatchArchive used outside a with block"
        name = self.unique_name(stem, suffix)
        self._zip.writestr(name, data)
        self.names.append(name)
        return name

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._zip is not None
        self._zip.close()
        if exc_type is None:
            self.temp_path.replace(self.path)
            logger.info("Wrote %s (%d files)", self.path, len(self.names))
        else:
            self.temp_path.unlink(missing_ok=True)
