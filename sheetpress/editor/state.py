"""
Interaction state for the canvas.

Pointer handling keeps no mutable "current value" refs: the engine holds one
immutable ``InteractionState`` and replaces it wholesale, at most once per
animation frame, through ``FrameScheduler``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, NamedTuple, Optional, Tuple

from .. import config
from ..geometry.boundaries import Rect


RESIZE_HANDLES = ("nw", "n", "ne", "e", "se", "s", "sw", "w")


class Mode(str, Enum):
    IDLE = "idle"
    PENDING_DRAG = "pending-drag"
    DRAGGING = "dragging"
    PENDING_RESIZE = "pending-resize"
    RESIZING = "resizing"
    PANNING = "panning"


class Point(NamedTuple):
    x: float
    y: float


@dataclass(frozen=True)
class InteractionState:
    mode: Mode = Mode.IDLE
    pointer_origin: Optional[Point] = None
    target_id: Optional[str] = None
    additive: bool = False
    # Pointer went past the drag threshold; the gesture is no longer a click.
    moved: bool = False
    start_positions: Dict[str, Point] = field(default_factory=dict)
    drag_offset: Point = Point(0.0, 0.0)
    resize_handle: Optional[str] = None
    resize_origin: Optional[Rect] = None
    resize_preview: Optional[Rect] = None
    pan_origin: Optional[Point] = None

    @property
    def is_dragging(self) -> bool:
        return self.mode == Mode.DRAGGING

    @property
    def is_resizing(self) -> bool:
        return self.mode == Mode.RESIZING

    def moving(self, element_id: str) -> bool:
        return self.is_dragging and element_id in self.start_positions


@dataclass(frozen=True)
class ViewState:
    zoom: float = 1.0
    pan: Point = Point(0.0, 0.0)
    space_held: bool = False
    pan_mode: bool = False

    def screen_to_document(self, point: Point) -> Point:
        return Point((point.x - self.pan.x) / self.zoom, (point.y - self.pan.y) / self.zoom)

    def zoomed_at(self, new_zoom: float, cursor: Point) -> "ViewState":
        """Change zoom while keeping the document point under ``cursor`` fixed."""
        new_zoom = clamp_zoom(new_zoom)
        ratio = new_zoom / self.zoom
        pan = Point(
            cursor.x - (cursor.x - self.pan.x) * ratio,
            cursor.y - (cursor.y - self.pan.y) * ratio,
        )
        return ViewState(zoom=new_zoom, pan=pan, space_held=self.space_held, pan_mode=self.pan_mode)


def clamp_zoom(value: float) -> float:
    return max(config.ZOOM_MIN, min(config.ZOOM_MAX, value))


class FrameScheduler:
    """
    Request-animation-frame coalescing.

    Only the most recent request survives until ``flush``; a burst of pointer
    moves between two frames costs one geometry update.
    """

    def __init__(self) -> None:
        self._pending: Optional[Callable[[], None]] = None
        self.frames = 0

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request(self, callback: Callable[[], None]) -> None:
        self._pending = callback

    def cancel(self) -> None:
        self._pending = None

    def flush(self) -> bool:
        callback, self._pending = self._pending, None
        if callback is None:
            return False
        self.frames += 1
        callback()
        return True
