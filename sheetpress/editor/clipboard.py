from __future__ import annotations

import json
import logging
import time
import uuid
from dataclasses import replace
from typing import List, Optional, Sequence

from .. import config
from ..document import CanvasElement
from ..storage import KeyValueStore, MemoryKeyValueStore


logger = logging.getLogger(__name__)


def new_element_id() -> str:
    return f"element-{uuid.uuid4().hex[:12]}"


class Clipboard:
    """Copied elements kept in a key-value store so they survive a reload."""

    def __init__(self, store: KeyValueStore | None = None, key: str = config.CLIPBOARD_KEY) -> None:
        self.store = store or MemoryKeyValueStore()
        self.key = key

    def _read(self) -> Optional[dict]:
        raw = self.store.get(self.key)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable clipboard payload")
            return None
        return data if isinstance(data, dict) else None

    @property
    def has_content(self) -> bool:
        data = self._read()
        return bool(data and data.get("elements"))

    def _write(self, elements: Sequence[CanvasElement], is_cut: bool) -> None:
        if not elements:
            return
        payload = {
            "elements": [element.to_dict() for element in elements],
            "timestamp": int(time.time() * 1000),
            "isCut": is_cut,
        }
        self.store.set(self.key, json.dumps(payload))

    def copy(self, elements: Sequence[CanvasElement]) -> None:
        self._write(elements, is_cut=False)

    def cut(self, elements: Sequence[CanvasElement]) -> None:
        self._write(elements, is_cut=True)

    def paste(self, offset_x: float = config.PASTE_OFFSET, offset_y: float = config.PASTE_OFFSET) -> List[CanvasElement]:
        """Fresh copies shifted by the offset; pasted elements leave their group."""
        data = self._read()
        if not data or not data.get("elements"):
            return []
        try:
            elements = [CanvasElement.from_dict(item) for item in data["elements"]]
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed clipboard elements")
            return []
        pasted = [
            replace(el, id=new_element_id(), x=el.x + offset_x, y=el.y + offset_y, group_id=None)
            for el in elements
        ]
        if data.get("isCut"):
            self.clear()
        return pasted

    def clear(self) -> None:
        self.store.set(self.key, None)
