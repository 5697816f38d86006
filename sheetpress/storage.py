from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlmodel import select

from . import config
from .models import KeyValue, SavedDocument, get_session, init_db, utcnow


logger = logging.getLogger(__name__)

ARTIFACT_NAMES = {
    "pdf": "{name}.pdf",
    "bundle": "{name}_all.zip",
    "preview": "{name}.html",
    "template": "{name}.json",
    "error": "{name}.error.log",
}


def export_dir(base_dir: Path | None = None) -> Path:
    root = base_dir or config.OUT_DIR
    root.mkdir(parents=True, exist_ok=True)
    return root


def artifact_path(name: str, artifact_type: str, base_dir: Path | None = None) -> Path:
    filename = ARTIFACT_NAMES[artifact_type].format(name=name)
    return export_dir(base_dir) / filename


Listener = Callable[[str, Optional[str]], None]


class KeyValueStore(Protocol):
    """Preference/clipboard persistence port."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: Optional[str]) -> None: ...

    def subscribe(self, listener: Listener) -> Callable[[], None]: ...


class _Listeners:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, key: str, value: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(key, value)


class MemoryKeyValueStore(_Listeners):
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        super().__init__()
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._data.pop(key, None)
        else:
            self._data[key] = value
        self._notify(key, value)


class SqlKeyValueStore(_Listeners):
    def __init__(self) -> None:
        super().__init__()
        init_db()

    def get(self, key: str) -> Optional[str]:
        with get_session() as session:
            row = session.get(KeyValue, key)
            return row.value if row else None

    def set(self, key: str, value: Optional[str]) -> None:
        with get_session() as session:
            row = session.get(KeyValue, key)
            if value is None:
                if row is not None:
                    session.delete(row)
            elif row is None:
                session.add(KeyValue(key=key, value=value))
            else:
                row.value = value
                row.updated_at = utcnow()
                session.add(row)
            session.commit()
        self._notify(key, value)


class DocumentStore:
    """Whole-document blobs keyed by id; sessions and templates share the table."""

    def __init__(self, kind: str = "session") -> None:
        self.kind = kind
        init_db()

    def save(self, payload: Dict[str, Any], name: str = "", doc_id: str | None = None) -> SavedDocument:
        doc_id = doc_id or f"{self.kind}_{uuid.uuid4().hex[:12]}"
        text = json.dumps(payload)
        with get_session() as session:
            record = session.get(SavedDocument, doc_id)
            if record is None:
                record = SavedDocument(id=doc_id, kind=self.kind, name=name, payload=text)
            else:
                record.payload = text
                record.name = name or record.name
                record.updated_at = utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
        logger.info("Saved %s %s", self.kind, doc_id)
        return record

    def get(self, doc_id: str) -> Optional[SavedDocument]:
        with get_session() as session:
            record = session.get(SavedDocument, doc_id)
            if record is None or record.kind != self.kind:
                return None
            return record

    def load(self, doc_id: str) -> Optional[Dict[str, Any]]:
        record = self.get(doc_id)
        if record is None:
            return None
        return json.loads(record.payload)

    def list(self) -> List[SavedDocument]:
        with get_session() as session:
            statement = (
                select(SavedDocument)
                .where(SavedDocument.kind == self.kind)
                .order_by(SavedDocument.updated_at.desc())
            )
            return list(session.exec(statement))

    def delete(self, doc_id: str) -> bool:
        with get_session() as session:
            record = session.get(SavedDocument, doc_id)
            if record is None or record.kind != self.kind:
                return False
            session.delete(record)
            session.commit()
        return True

    def duplicate(self, doc_id: str) -> Optional[SavedDocument]:
        record = self.get(doc_id)
        if record is None:
            return None
        return self.save(json.loads(record.payload), name=f"{record.name} (Copy)")

    def increment_usage(self, doc_id: str) -> None:
        with get_session() as session:
            record = session.get(SavedDocument, doc_id)
            if record is None:
                return
            record.usage_count += 1
            record.updated_at = utcnow()
            session.add(record)
            session.commit()
