"""
CanvasWorkspace: the interaction engine behind the layout editor.

Pointer, wheel and key events come in as plain method calls with screen
coordinates (relative to the canvas container). The engine turns them into
document edits. Live drag and resize geometry never touches the element
list; it lives in ``InteractionState`` until pointer-up commits one batch
and one history snapshot.
"""

from __future__ import annotations

import base64
import io
import logging
import math
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from PIL import Image

from .. import config
from ..document import CanvasElement, Dataset, Document, ElementGroup, ElementStyle, Page, paint_order
from ..geometry.alignment import align_elements, distribute_elements
from ..geometry.boundaries import Bounds, Rect, clamp_resize, group_delta
from ..overflow import estimate_text_overflow
from .clipboard import Clipboard, new_element_id
from .history import History, Snapshot
from .keyboard import DEFAULT_SHORTCUTS, KeyEvent, Shortcut, current_platform, match_shortcut
from .state import RESIZE_HANDLES, FrameScheduler, InteractionState, Mode, Point, ViewState, clamp_zoom


logger = logging.getLogger(__name__)


def new_group_id() -> str:
    return f"group-{uuid.uuid4().hex[:12]}"


def _scope(elements: Sequence[CanvasElement], element: CanvasElement) -> List[CanvasElement]:
    """Elements the z-order of ``element`` is compared against, back to front."""
    if element.group_id:
        members = [el for el in elements if el.group_id == element.group_id]
    else:
        members = [el for el in elements if not el.group_id]
    return paint_order(members)


def _swap_with(elements: List[CanvasElement], a: CanvasElement, b: CanvasElement) -> List[CanvasElement]:
    # Exchange both sort keys (layerIndex and list slot) so ties flip too.
    ia = next(i for i, el in enumerate(elements) if el.id == a.id)
    ib = next(i for i, el in enumerate(elements) if el.id == b.id)
    out = list(elements)
    out[ia] = replace(b, layer_index=a.layer_index)
    out[ib] = replace(a, layer_index=b.layer_index)
    return out


def reorder(elements: Sequence[CanvasElement], element_id: str, action: str) -> List[CanvasElement]:
    """
    Move one element in the paint order within its scope.

    Group members are ordered among their group, ungrouped elements among the
    other ungrouped elements. ``action`` is bring_forward, send_backward,
    bring_to_front or send_to_back.
    """
    elements = list(elements)
    element = next((el for el in elements if el.id == element_id), None)
    if element is None:
        return elements
    scope = _scope(elements, element)
    position = [el.id for el in scope].index(element_id)

    if action == "bring_forward":
        if position < len(scope) - 1:
            return _swap_with(elements, element, scope[position + 1])
        return elements
    if action == "send_backward":
        if position > 0:
            return _swap_with(elements, element, scope[position - 1])
        return elements

    layers = [el.layer_index for el in scope]
    if action == "bring_to_front":
        new_layer = max(layers) + 1
    elif action == "send_to_back":
        new_layer = min(layers) - 1
    else:
        raise ValueError(f"Unknown z-order action: {action}")
    return [replace(el, layer_index=new_layer) if el.id == element_id else el for el in elements]


def image_data_url(data: bytes) -> Tuple[str, int, int]:
    """Encode picked image bytes as a data URL; returns (url, width, height)."""
    with Image.open(io.BytesIO(data)) as img:
        width, height = img.size
        mime = Image.MIME.get(img.format or "", "image/png")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}", width, height


class CanvasWorkspace:
    def __init__(
        self,
        document: Document | None = None,
        dataset: Dataset | None = None,
        clipboard: Clipboard | None = None,
        platform: str | None = None,
        shortcuts: Sequence[Shortcut] = DEFAULT_SHORTCUTS,
    ) -> None:
        document = document or Document()
        document.validate()
        self.page: Page = document.page
        self.elements: List[CanvasElement] = list(document.elements)
        self.groups: List[ElementGroup] = list(document.groups)
        self.dataset = dataset or Dataset()
        self.preview_row = 0
        self.clipboard = clipboard or Clipboard()
        self.platform = platform or current_platform()
        self.shortcuts = list(shortcuts)

        self.selection: List[str] = []
        self.state = InteractionState()
        self.view = ViewState()
        self.frames = FrameScheduler()
        self.history = History(self._snapshot())
        self._actions: Dict[str, Callable[[], Any]] = {
            "copy": self.copy,
            "cut": self.cut,
            "paste": self.paste,
            "duplicate": self.duplicate,
            "select_all": self.select_all,
            "deselect": self.deselect,
            "delete": self.delete_selected,
            "undo": self.undo,
            "redo": self.redo,
            "bring_forward": lambda: self.reorder_selected("bring_forward"),
            "send_backward": lambda: self.reorder_selected("send_backward"),
            "bring_to_front": lambda: self.reorder_selected("bring_to_front"),
            "send_to_back": lambda: self.reorder_selected("send_to_back"),
            "group": self.group_selected,
            "ungroup": self.ungroup_selected,
            "zoom_in": self.zoom_in,
            "zoom_out": self.zoom_out,
            "zoom_reset": self.zoom_reset,
            "zoom_fit": self.zoom_to_fit,
        }
        for direction, (dx, dy) in {"left": (-1, 0), "right": (1, 0), "up": (0, -1), "down": (0, 1)}.items():
            self._actions[f"nudge_{direction}"] = self._nudger(dx * config.NUDGE_SMALL, dy * config.NUDGE_SMALL)
            self._actions[f"nudge_{direction}_large"] = self._nudger(dx * config.NUDGE_LARGE, dy * config.NUDGE_LARGE)
        self.container_size: Tuple[float, float] = (1200.0, 900.0)

    # ------------------------------------------------------------------
    # Document access

    @property
    def document(self) -> Document:
        return Document(elements=list(self.elements), groups=list(self.groups), page=self.page)

    @property
    def bounds(self) -> Bounds:
        return Bounds.for_page(self.page)

    @property
    def sample_row(self) -> Dict[str, Any]:
        return self.dataset.sample_row(self.preview_row)

    def element(self, element_id: str | None) -> Optional[CanvasElement]:
        for el in self.elements:
            if el.id == element_id:
                return el
        return None

    def group(self, group_id: str | None) -> Optional[ElementGroup]:
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def selected_elements(self) -> List[CanvasElement]:
        wanted = set(self.selection)
        return [el for el in self.elements if el.id in wanted]

    def overflow_warnings(self) -> List[str]:
        """Ids of bound text elements whose sample-row text would overflow."""
        row = self.sample_row
        return [
            el.id
            for el in self.elements
            if el.type == "text" and el.is_bound and estimate_text_overflow(el, row).will_overflow
        ]

    def _snapshot(self) -> Snapshot:
        return Snapshot(tuple(self.elements), tuple(self.groups))

    def _commit(
        self,
        elements: Iterable[CanvasElement],
        groups: Iterable[ElementGroup] | None = None,
        reason: str = "",
    ) -> None:
        self.elements = list(elements)
        if groups is not None:
            self.groups = list(groups)
        self.history.push(self._snapshot())
        logger.debug("commit %s (%d elements, history %d)", reason, len(self.elements), len(self.history))

    def _restore(self, snapshot: Snapshot) -> None:
        self.elements = list(snapshot.elements)
        self.groups = list(snapshot.groups)
        known = {el.id for el in self.elements}
        self.selection = [eid for eid in self.selection if eid in known]

    def load_document(self, document: Document) -> None:
        """Replace the whole document. Nothing changes if validation fails."""
        document.validate()
        self.frames.cancel()
        self.page = document.page
        self.elements = list(document.elements)
        self.groups = list(document.groups)
        self.selection = []
        self.state = InteractionState()
        self.history.reset(self._snapshot())
        logger.info("Loaded document with %d elements", len(self.elements))

    # ------------------------------------------------------------------
    # Selection

    def select(self, element_id: str, additive: bool = False) -> None:
        if self.element(element_id) is None:
            return
        if not additive:
            self.selection = [element_id]
        elif element_id in self.selection:
            self.selection = [eid for eid in self.selection if eid != element_id]
        else:
            self.selection = self.selection + [element_id]

    def select_all(self) -> None:
        self.selection = [el.id for el in self.elements if not el.hidden]

    def deselect(self) -> None:
        self.selection = []

    def _movable_ids(self, ids: Iterable[str]) -> List[str]:
        """Expand ids to whole groups and drop locked elements and locked groups."""
        out: List[str] = []
        for element_id in ids:
            el = self.element(element_id)
            if el is None:
                continue
            group = self.group(el.group_id)
            if group is not None:
                if group.locked:
                    continue
                members = [m for m in self.elements if m.group_id == group.id]
            else:
                members = [el]
            for member in members:
                if not member.locked and member.id not in out:
                    out.append(member.id)
        return out

    # ------------------------------------------------------------------
    # Pointer input

    def pointer_down(
        self,
        x: float,
        y: float,
        element_id: str | None = None,
        button: int = 0,
        shift: bool = False,
        handle: str | None = None,
    ) -> None:
        point = Point(x, y)
        self.frames.cancel()
        if button == 1 or self.view.space_held or self.view.pan_mode:
            self.state = InteractionState(mode=Mode.PANNING, pan_origin=point)
            return
        if button != 0:
            return
        if handle is not None and element_id is not None:
            self.resize_start(element_id, handle, point)
            return
        self.state = InteractionState(
            mode=Mode.PENDING_DRAG,
            pointer_origin=point,
            target_id=element_id,
            additive=shift,
        )

    def resize_start(self, element_id: str, handle: str, point: Point) -> None:
        if handle not in RESIZE_HANDLES:
            raise ValueError(f"Unknown resize handle: {handle}")
        el = self.element(element_id)
        if el is None or el.locked:
            return
        self.selection = [element_id]
        origin = Rect(el.x, el.y, el.width, el.height)
        self.state = InteractionState(
            mode=Mode.PENDING_RESIZE,
            pointer_origin=point,
            target_id=element_id,
            resize_handle=handle,
            resize_origin=origin,
            resize_preview=origin,
        )

    def pointer_move(self, x: float, y: float) -> None:
        """Queue a geometry update; only the latest move per frame is applied."""
        if self.state.mode == Mode.IDLE:
            return
        point = Point(x, y)
        self.frames.request(lambda: self._advance(point))

    def frame(self) -> bool:
        return self.frames.flush()

    def _past_threshold(self, point: Point) -> bool:
        origin = self.state.pointer_origin
        if origin is None:
            return False
        return math.hypot(point.x - origin.x, point.y - origin.y) > config.DRAG_THRESHOLD_PX

    def _advance(self, point: Point) -> None:
        state = self.state
        if state.mode == Mode.PANNING:
            assert state.pan_origin is not None
            pan = Point(
                self.view.pan.x + point.x - state.pan_origin.x,
                self.view.pan.y + point.y - state.pan_origin.y,
            )
            self.view = replace(self.view, pan=pan)
            self.state = replace(state, pan_origin=point)
            return

        if state.mode == Mode.PENDING_DRAG:
            if not self._past_threshold(point):
                return
            if state.target_id is None:
                self.state = replace(state, moved=True)
                return
            if state.target_id not in self.selection:
                self.select(state.target_id, additive=state.additive)
            ids = self._movable_ids(self.selection)
            if not ids:
                self.state = replace(state, moved=True)
                return
            starts = {eid: Point(el.x, el.y) for eid in ids for el in [self.element(eid)] if el is not None}
            state = replace(state, mode=Mode.DRAGGING, start_positions=starts)

        if state.mode == Mode.DRAGGING:
            assert state.pointer_origin is not None
            dx = (point.x - state.pointer_origin.x) / self.view.zoom
            dy = (point.y - state.pointer_origin.y) / self.view.zoom
            dx, dy = group_delta(self.elements, state.start_positions, dx, dy, self.bounds)
            self.state = replace(state, drag_offset=Point(dx, dy))
            return

        if state.mode == Mode.PENDING_RESIZE:
            if not self._past_threshold(point):
                return
            state = replace(state, mode=Mode.RESIZING)

        if state.mode == Mode.RESIZING:
            self.state = replace(state, resize_preview=self._resize_rect(state, point))

    def _resize_rect(self, state: InteractionState, point: Point) -> Rect:
        assert state.resize_origin is not None and state.pointer_origin is not None
        handle = state.resize_handle or "se"
        origin = state.resize_origin
        dx = (point.x - state.pointer_origin.x) / self.view.zoom
        dy = (point.y - state.pointer_origin.y) / self.view.zoom
        x, y, width, height = origin
        if "e" in handle:
            width += dx
        if "w" in handle:
            x += dx
            width -= dx
        if "s" in handle:
            height += dy
        if "n" in handle:
            y += dy
            height -= dy
        return clamp_resize(
            x, y, width, height, config.MIN_ELEMENT_SIZE, config.MIN_ELEMENT_SIZE, self.bounds, handle
        )

    def pointer_up(self, x: float, y: float) -> bool:
        """Finish the gesture. Returns True when the document changed."""
        self.frames.cancel()
        if self.state.mode != Mode.IDLE:
            self._advance(Point(x, y))
        state, self.state = self.state, InteractionState()

        if state.mode == Mode.DRAGGING:
            dx, dy = state.drag_offset
            if dx == 0 and dy == 0:
                return False
            moved = [
                replace(el, x=state.start_positions[el.id].x + dx, y=state.start_positions[el.id].y + dy)
                if el.id in state.start_positions
                else el
                for el in self.elements
            ]
            self._commit(moved, reason="drag")
            return True

        if state.mode == Mode.RESIZING:
            preview = state.resize_preview
            if preview is None or preview == state.resize_origin:
                return False
            resized = [
                replace(el, x=preview.x, y=preview.y, width=preview.width, height=preview.height)
                if el.id == state.target_id
                else el
                for el in self.elements
            ]
            self._commit(resized, reason="resize")
            return True

        if state.mode == Mode.PENDING_DRAG and not state.moved:
            # Below the drag threshold the gesture counts as a click.
            if state.target_id is None:
                self.deselect()
            else:
                self.select(state.target_id, additive=state.additive)
        return False

    # ------------------------------------------------------------------
    # Zoom and pan

    def wheel(self, delta_y: float, x: float, y: float, ctrl: bool = False, meta: bool = False) -> bool:
        if not (ctrl or meta):
            return False
        self.view = self.view.zoomed_at(self.view.zoom - delta_y * config.WHEEL_ZOOM_FACTOR, Point(x, y))
        return True

    def pinch(self, scale: float, x: float, y: float) -> None:
        self.view = self.view.zoomed_at(self.view.zoom * scale, Point(x, y))

    def set_zoom(self, zoom: float) -> None:
        self.view = replace(self.view, zoom=clamp_zoom(zoom))

    def zoom_in(self) -> None:
        self.set_zoom(round(self.view.zoom + config.ZOOM_STEP, 4))

    def zoom_out(self) -> None:
        self.set_zoom(round(self.view.zoom - config.ZOOM_STEP, 4))

    def zoom_reset(self) -> None:
        self.view = replace(self.view, zoom=1.0, pan=Point(0.0, 0.0))

    def zoom_to_fit(self, container_width: float | None = None, container_height: float | None = None) -> None:
        if container_width is None or container_height is None:
            container_width, container_height = self.container_size
        margin = config.FIT_MARGIN_PX
        zoom = min(
            (container_width - margin) / self.page.width,
            (container_height - margin) / self.page.height,
            1.0,
        )
        self.view = replace(self.view, zoom=clamp_zoom(zoom), pan=Point(0.0, 0.0))

    def toggle_pan_mode(self) -> None:
        self.view = replace(self.view, pan_mode=not self.view.pan_mode)

    # ------------------------------------------------------------------
    # Keyboard

    def key_down(self, event: KeyEvent) -> Optional[str]:
        if event.key == " ":
            if not self.view.space_held:
                self.view = replace(self.view, space_held=True)
            return "pan"
        return self.handle_key(event)

    def key_up(self, event: KeyEvent) -> None:
        if event.key == " ":
            self.view = replace(self.view, space_held=False)
            if self.state.mode == Mode.PANNING:
                self.state = InteractionState()

    def handle_key(self, event: KeyEvent) -> Optional[str]:
        """Run the action bound to ``event``; returns its name, or None when unbound."""
        shortcut = match_shortcut(event, self.shortcuts, self.platform)
        if shortcut is None:
            return None
        self._actions[shortcut.action]()
        return shortcut.action

    # ------------------------------------------------------------------
    # Element operations

    def _next_layer(self) -> float:
        return max((el.layer_index for el in self.elements), default=-1) + 1

    def _add(self, element: CanvasElement) -> CanvasElement:
        x, y = element.x, element.y
        x = max(0.0, min(x, self.page.width - element.width))
        y = max(0.0, min(y, self.page.height - element.height))
        element = replace(element, x=x, y=y, layer_index=self._next_layer())
        self._commit(self.elements + [element], reason=f"add {element.type}")
        self.selection = [element.id]
        return element

    def add_text(self, content: str = "Text", **changes: Any) -> CanvasElement:
        element = CanvasElement(
            id=new_element_id(),
            type="text",
            x=50.0,
            y=50.0,
            width=200.0,
            height=40.0,
            content=content,
            style=ElementStyle(
                font_size=config.DEFAULT_FONT_SIZE,
                font_family=config.DEFAULT_FONT_FAMILY,
                color=config.DEFAULT_TEXT_COLOR,
            ),
        )
        return self._add(replace(element, **changes))

    def add_shape(self, **changes: Any) -> CanvasElement:
        element = CanvasElement(
            id=new_element_id(),
            type="shape",
            x=50.0,
            y=50.0,
            width=100.0,
            height=100.0,
            style=ElementStyle(background_color=config.DEFAULT_SHAPE_FILL),
        )
        return self._add(replace(element, **changes))

    def add_image(self, data: bytes, name: str | None = None, **changes: Any) -> CanvasElement:
        url, width, height = image_data_url(data)
        scale = min(1.0, config.MAX_IMAGE_SIDE / max(width, height, 1))
        element = CanvasElement(
            id=new_element_id(),
            type="image",
            x=50.0,
            y=50.0,
            width=max(1.0, round(width * scale)),
            height=max(1.0, round(height * scale)),
            image_url=url,
            name=name,
            alt_text=name,
        )
        return self._add(replace(element, **changes))

    def update_element(self, element_id: str, **changes: Any) -> Optional[CanvasElement]:
        el = self.element(element_id)
        if el is None:
            return None
        updated = replace(el, **changes)
        self._commit([updated if e.id == element_id else e for e in self.elements], reason="update")
        return updated

    def update_style(self, element_id: str, **changes: Any) -> Optional[CanvasElement]:
        el = self.element(element_id)
        if el is None:
            return None
        return self.update_element(element_id, style=replace(el.style, **changes))

    def rename(self, element_id: str, name: str) -> None:
        self.update_element(element_id, name=name)

    def set_locked(self, element_id: str, locked: bool = True) -> None:
        self.update_element(element_id, locked=locked)

    def toggle_visibility(self, element_id: str) -> None:
        el = self.element(element_id)
        if el is not None:
            self.update_element(element_id, hidden=not el.hidden)

    def delete_elements(self, ids: Iterable[str]) -> None:
        doomed = set(ids)
        if not doomed:
            return
        elements = [el for el in self.elements if el.id not in doomed]
        groups: List[ElementGroup] = []
        for group in self.groups:
            remaining = [eid for eid in group.element_ids if eid not in doomed]
            if remaining:
                groups.append(replace(group, element_ids=remaining))
        self.selection = [eid for eid in self.selection if eid not in doomed]
        self._commit(elements, groups, reason="delete")

    def delete_selected(self) -> None:
        self.delete_elements(self.selection)

    def duplicate(self) -> List[CanvasElement]:
        originals = self.selected_elements()
        if not originals:
            return []
        layer = self._next_layer()
        copies = [
            replace(
                el,
                id=new_element_id(),
                x=el.x + config.DUPLICATE_OFFSET,
                y=el.y + config.DUPLICATE_OFFSET,
                group_id=None,
                layer_index=layer + index,
            )
            for index, el in enumerate(originals)
        ]
        self._commit(self.elements + copies, reason="duplicate")
        self.selection = [el.id for el in copies]
        return copies

    # ------------------------------------------------------------------
    # Layout

    def align(self, mode: str) -> None:
        if not self.selection:
            return
        aligned = align_elements(self.elements, self.selection, mode, self.page.width, self.page.height)
        self._commit(aligned, reason=f"align {mode}")

    def distribute(self, axis: str) -> None:
        if len(self.selection) < 3:
            return
        self._commit(distribute_elements(self.elements, self.selection, axis), reason=f"distribute {axis}")

    def nudge(self, dx: float, dy: float) -> bool:
        ids = self._movable_ids(self.selection)
        if not ids:
            return False
        dx, dy = group_delta(self.elements, ids, dx, dy, self.bounds)
        if dx == 0 and dy == 0:
            return False
        wanted = set(ids)
        moved = [replace(el, x=el.x + dx, y=el.y + dy) if el.id in wanted else el for el in self.elements]
        self._commit(moved, reason="nudge")
        return True

    def _nudger(self, dx: float, dy: float) -> Callable[[], bool]:
        return lambda: self.nudge(dx, dy)

    def reorder_selected(self, action: str) -> None:
        if not self.selection:
            return
        elements = self.elements
        for element_id in self.selection:
            elements = reorder(elements, element_id, action)
        if elements != self.elements:
            self._commit(elements, reason=action)

    # ------------------------------------------------------------------
    # Groups

    def group_selected(self, name: str | None = None) -> Optional[ElementGroup]:
        ids = [el.id for el in self.selected_elements()]
        if len(ids) < 2:
            return None
        wanted = set(ids)
        group = ElementGroup(id=new_group_id(), name=name or f"Group {len(self.groups) + 1}", element_ids=ids)
        # Members leave any group they were in; emptied groups disappear.
        groups: List[ElementGroup] = []
        for existing in self.groups:
            remaining = [eid for eid in existing.element_ids if eid not in wanted]
            if remaining:
                groups.append(replace(existing, element_ids=remaining))
        groups.append(group)
        elements = [replace(el, group_id=group.id) if el.id in wanted else el for el in self.elements]
        self._commit(elements, groups, reason="group")
        return group

    def ungroup_selected(self) -> None:
        group_ids = {el.group_id for el in self.selected_elements() if el.group_id}
        if not group_ids:
            return
        elements = [replace(el, group_id=None) if el.group_id in group_ids else el for el in self.elements]
        groups = [group for group in self.groups if group.id not in group_ids]
        self._commit(elements, groups, reason="ungroup")

    def _update_group(self, group_id: str, **changes: Any) -> None:
        if self.group(group_id) is None:
            return
        groups = [replace(g, **changes) if g.id == group_id else g for g in self.groups]
        self._commit(self.elements, groups, reason="group update")

    def set_group_locked(self, group_id: str, locked: bool = True) -> None:
        self._update_group(group_id, locked=locked)

    def rename_group(self, group_id: str, name: str) -> None:
        self._update_group(group_id, name=name)

    # ------------------------------------------------------------------
    # Clipboard

    def copy(self) -> None:
        self.clipboard.copy(self.selected_elements())

    def cut(self) -> None:
        selected = self.selected_elements()
        if not selected:
            return
        self.clipboard.cut(selected)
        self.delete_elements([el.id for el in selected])

    def paste(self) -> List[CanvasElement]:
        pasted = self.clipboard.paste()
        if not pasted:
            return []
        layer = self._next_layer()
        pasted = [replace(el, layer_index=layer + index) for index, el in enumerate(pasted)]
        self._commit(self.elements + pasted, reason="paste")
        self.selection = [el.id for el in pasted]
        return pasted

    # ------------------------------------------------------------------
    # History

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True
