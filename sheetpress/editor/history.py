from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..document import CanvasElement, ElementGroup


@dataclass(frozen=True)
class Snapshot:
    elements: Tuple[CanvasElement, ...]
    groups: Tuple[ElementGroup, ...]


class History:
    """Linear undo stack: snapshots plus a cursor. New pushes drop the redo tail."""

    def __init__(self, initial: Snapshot) -> None:
        self._snapshots: List[Snapshot] = [initial]
        self._index = 0

    @property
    def current(self) -> Snapshot:
        return self._snapshots[self._index]

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._snapshots) - 1

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, snapshot: Snapshot) -> None:
        del self._snapshots[self._index + 1:]
        self._snapshots.append(snapshot)
        self._index = len(self._snapshots) - 1

    def undo(self) -> Optional[Snapshot]:
        if not self.can_undo:
            return None
        self._index -= 1
        return self.current

    def redo(self) -> Optional[Snapshot]:
        if not self.can_redo:
            return None
        self._index += 1
        return self.current

    def reset(self, snapshot: Snapshot) -> None:
        self._snapshots = [snapshot]
        self._index = 0
