from __future__ import annotations

import io

import pytest
from PIL import Image

from sheetpress.document import CanvasElement, Document, ElementGroup, Page, paint_order
from sheetpress.editor.state import Mode, Point
from sheetpress.editor.workspace import CanvasWorkspace, reorder


def _el(eid: str, x: float, y: float, w: float = 100, h: float = 50, **kwargs) -> CanvasElement:
    return CanvasElement(id=eid, type="shape", x=x, y=y, width=w, height=h, **kwargs)


def _workspace(*elements: CanvasElement, groups=()) -> CanvasWorkspace:
    document = Document(elements=list(elements), groups=list(groups), page=Page(794, 1123))
    return CanvasWorkspace(document, platform="linux")


def _drag(ws: CanvasWorkspace, element_id: str, dx: float, dy: float, start=(10.0, 10.0)) -> bool:
    x, y = start
    ws.pointer_down(x, y, element_id)
    ws.pointer_move(x + dx, y + dy)
    ws.frame()
    return ws.pointer_up(x + dx, y + dy)


def test_drag_past_page_edge_is_clamped() -> None:
    ws = _workspace(CanvasElement(id="t", type="text", x=700, y=1050, width=150, height=100))
    assert _drag(ws, "t", 100, 100)
    el = ws.element("t")
    assert (el.x, el.y) == (644, 1023)


def test_drag_geometry_stays_in_state_until_pointer_up() -> None:
    ws = _workspace(_el("a", 100, 100))
    ws.pointer_down(0, 0, "a")
    ws.pointer_move(30, 40)
    ws.frame()
    assert ws.state.mode == Mode.DRAGGING
    assert ws.state.drag_offset == (30, 40)
    assert (ws.element("a").x, ws.element("a").y) == (100, 100)
    history_before = len(ws.history)
    ws.pointer_up(30, 40)
    assert (ws.element("a").x, ws.element("a").y) == (130, 140)
    assert len(ws.history) == history_before + 1
    assert ws.state.mode == Mode.IDLE


def test_pointer_moves_are_coalesced_per_frame() -> None:
    ws = _workspace(_el("a", 100, 100))
    ws.pointer_down(0, 0, "a")
    for step in range(1, 20):
        ws.pointer_move(step, step)
    assert ws.frame()
    assert not ws.frame()
    assert ws.frames.frames == 1
    assert ws.state.drag_offset == (19, 19)


def test_drag_threshold_separates_click_from_drag() -> None:
    ws = _workspace(_el("a", 100, 100), _el("b", 300, 300))
    ws.pointer_down(0, 0, "a")
    ws.pointer_move(2, 2)
    ws.frame()
    assert ws.state.mode == Mode.PENDING_DRAG
    assert not ws.pointer_up(2, 2)
    assert ws.selection == ["a"]
    assert ws.element("a").x == 100

    # Shift-click toggles membership.
    ws.pointer_down(0, 0, "b", shift=True)
    ws.pointer_up(0, 0)
    assert ws.selection == ["a", "b"]
    ws.pointer_down(0, 0, "a", shift=True)
    ws.pointer_up(0, 0)
    assert ws.selection == ["b"]

    # Click on the empty canvas clears the selection.
    ws.pointer_down(500, 500)
    ws.pointer_up(500, 500)
    assert ws.selection == []


def test_drag_divides_screen_delta_by_zoom() -> None:
    ws = _workspace(_el("a", 100, 100))
    ws.set_zoom(2.0)
    _drag(ws, "a", 40, 20)
    assert (ws.element("a").x, ws.element("a").y) == (120, 110)


def test_group_moves_rigidly() -> None:
    group = ElementGroup(id="g", name="Pair", element_ids=["a", "b"])
    ws = _workspace(_el("a", 600, 100, group_id="g"), _el("b", 650, 300, group_id="g"), _el("c", 0, 0), groups=[group])
    _drag(ws, "a", 200, 50)
    a, b, c = ws.element("a"), ws.element("b"), ws.element("c")
    # b's right edge (750) stops at 794.
    assert (a.x, a.y) == (644, 150)
    assert (b.x, b.y) == (694, 350)
    assert (c.x, c.y) == (0, 0)


def test_locked_elements_and_groups_do_not_move() -> None:
    group = ElementGroup(id="g", element_ids=["a", "b"], locked=True)
    ws = _workspace(_el("a", 100, 100, group_id="g"), _el("b", 200, 100, group_id="g"), _el("c", 300, 300, locked=True), groups=[group])
    assert not _drag(ws, "a", 50, 50)
    assert ws.element("a").x == 100
    assert not _drag(ws, "c", 50, 50)
    assert ws.element("c").x == 300


def test_dragging_an_unmovable_element_is_not_a_click() -> None:
    ws = _workspace(_el("lock", 0, 0, locked=True), _el("b", 300, 300))
    ws.pointer_down(0, 0, "lock", shift=True)
    ws.pointer_move(50, 50)
    ws.frame()
    assert ws.state.moved
    assert not ws.pointer_up(50, 50)
    assert ws.selection == ["lock"]

    ws.pointer_down(600, 600)
    ws.pointer_move(650, 650)
    ws.frame()
    ws.pointer_up(650, 650)
    assert ws.selection == ["lock"]
    assert ws.element("lock").x == 0


def test_resize_with_floor_and_single_snapshot() -> None:
    ws = _workspace(_el("a", 100, 100, 100, 100))
    ws.pointer_down(200, 200, "a", handle="se")
    ws.pointer_move(150, 260)
    ws.frame()
    assert ws.state.mode == Mode.RESIZING
    assert ws.state.resize_preview == (100, 100, 50, 160)
    ws.pointer_move(-500, -500)
    ws.frame()
    assert ws.state.resize_preview.width == 20
    assert ws.state.resize_preview.height == 20
    before = len(ws.history)
    assert ws.pointer_up(-500, -500)
    el = ws.element("a")
    assert (el.x, el.y, el.width, el.height) == (100, 100, 20, 20)
    assert len(ws.history) == before + 1


def test_resize_from_west_keeps_east_edge() -> None:
    ws = _workspace(_el("a", 100, 100, 100, 100))
    ws.pointer_down(100, 150, "a", handle="w")
    ws.pointer_move(150, 150)
    ws.frame()
    ws.pointer_up(150, 150)
    el = ws.element("a")
    assert (el.x, el.width) == (150, 50)
    assert el.x + el.width == 200


def test_history_round_trip() -> None:
    ws = _workspace(_el("a", 100, 100))
    before = list(ws.elements)
    ws.select("a")
    ws.update_style("a", background_color="#ff0000")
    after = list(ws.elements)
    assert ws.undo()
    assert ws.elements == before
    assert ws.redo()
    assert ws.elements == after
    assert not ws.redo()

    # A new mutation drops the redo tail.
    ws.undo()
    ws.nudge(1, 0)
    assert not ws.history.can_redo


def test_history_covers_groups() -> None:
    ws = _workspace(_el("a", 0, 0), _el("b", 200, 0))
    ws.select_all()
    group = ws.group_selected()
    assert group is not None
    assert {el.group_id for el in ws.elements} == {group.id}
    ws.undo()
    assert ws.groups == []
    assert all(el.group_id is None for el in ws.elements)
    ws.redo()
    assert ws.groups[0].element_ids == ["a", "b"]


def test_group_requires_two_and_ungroup() -> None:
    ws = _workspace(_el("a", 0, 0), _el("b", 200, 0))
    ws.select("a")
    assert ws.group_selected() is None
    ws.select_all()
    ws.group_selected(name="Logo")
    assert ws.groups[0].name == "Logo"
    ws.select("b")
    ws.ungroup_selected()
    assert ws.groups == []
    assert ws.element("a").group_id is None


def test_deleting_last_member_deletes_group() -> None:
    group = ElementGroup(id="g", element_ids=["a", "b"])
    ws = _workspace(_el("a", 0, 0, group_id="g"), _el("b", 200, 0, group_id="g"), groups=[group])
    ws.delete_elements(["a"])
    assert ws.groups[0].element_ids == ["b"]
    ws.delete_elements(["b"])
    assert ws.groups == []
    ws.document.validate()


def test_z_order_within_scope() -> None:
    elements = [_el("a", 0, 0, layer_index=0), _el("b", 0, 0, layer_index=1), _el("c", 0, 0, layer_index=2)]
    forward = reorder(elements, "a", "bring_forward")
    assert [el.id for el in paint_order(forward)] == ["b", "a", "c"]
    front = reorder(elements, "a", "bring_to_front")
    assert next(el for el in front if el.id == "a").layer_index == 3
    back = reorder(elements, "c", "send_to_back")
    assert next(el for el in back if el.id == "c").layer_index == -1
    # Already at the top of its scope: nothing changes.
    assert reorder(elements, "c", "bring_forward") == elements


def test_z_order_ties_still_move() -> None:
    elements = [_el("a", 0, 0), _el("b", 0, 0)]
    moved = reorder(elements, "a", "bring_forward")
    assert [el.id for el in paint_order(moved)] == ["b", "a"]


def test_z_order_scope_ignores_other_scope() -> None:
    elements = [
        _el("g1", 0, 0, layer_index=0, group_id="g"),
        _el("u1", 0, 0, layer_index=5),
        _el("g2", 0, 0, layer_index=10, group_id="g"),
    ]
    forward = reorder(elements, "g1", "bring_forward")
    ids = {el.id: el.layer_index for el in forward}
    assert ids == {"g1": 10, "u1": 5, "g2": 0}
    front = reorder(elements, "u1", "bring_to_front")
    assert next(el for el in front if el.id == "u1").layer_index == 6


def test_zoom_keeps_cursor_point_fixed() -> None:
    ws = _workspace()
    cursor = Point(400.0, 300.0)
    before = ws.view.screen_to_document(cursor)
    assert ws.wheel(-50, *cursor, ctrl=True)
    assert ws.view.zoom == pytest.approx(1.5)
    after = ws.view.screen_to_document(cursor)
    assert after.x == pytest.approx(before.x)
    assert after.y == pytest.approx(before.y)
    assert not ws.wheel(-50, *cursor)

    ws.pinch(100, *cursor)
    assert ws.view.zoom == 3.0
    ws.pinch(0.0001, *cursor)
    assert ws.view.zoom == 0.1


def test_zoom_steps_reset_and_fit() -> None:
    ws = _workspace()
    ws.zoom_in()
    assert ws.view.zoom == pytest.approx(1.1)
    ws.zoom_out()
    ws.zoom_out()
    assert ws.view.zoom == pytest.approx(0.9)
    ws.zoom_reset()
    assert (ws.view.zoom, tuple(ws.view.pan)) == (1.0, (0.0, 0.0))
    ws.zoom_to_fit(894, 1000)
    assert ws.view.zoom == pytest.approx(900 / 1123)
    ws.zoom_to_fit(5000, 5000)
    assert ws.view.zoom == 1.0


def test_pan_with_space_and_middle_button() -> None:
    from sheetpress.editor.keyboard import KeyEvent

    ws = _workspace(_el("a", 100, 100))
    assert ws.key_down(KeyEvent(" ")) == "pan"
    ws.pointer_down(10, 10, "a")
    assert ws.state.mode == Mode.PANNING
    ws.pointer_move(40, 30)
    ws.frame()
    ws.pointer_up(40, 30)
    assert tuple(ws.view.pan) == (30, 20)
    assert ws.element("a").x == 100
    ws.key_up(KeyEvent(" "))
    assert not ws.view.space_held

    ws.pointer_down(0, 0, button=1)
    assert ws.state.mode == Mode.PANNING
    ws.pointer_up(0, 0)

    ws.toggle_pan_mode()
    ws.pointer_down(0, 0, "a")
    assert ws.state.mode == Mode.PANNING


def test_nudge_clamps_as_group() -> None:
    ws = _workspace(_el("a", 0, 5), _el("b", 50, 100))
    ws.select_all()
    assert ws.nudge(-10, -10)
    assert [(el.x, el.y) for el in ws.elements] == [(0, 0), (50, 95)]
    assert not ws.nudge(-1, 0)


def test_element_operations() -> None:
    ws = _workspace()
    text = ws.add_text("Hello", x=2000)
    assert text.x == 794 - 200
    assert ws.selection == [text.id]
    shape = ws.add_shape()
    assert shape.layer_index > text.layer_index

    ws.select(text.id)
    copies = ws.duplicate()
    assert (copies[0].x, copies[0].y) == (text.x + 20, text.y + 20)
    assert copies[0].id != text.id

    ws.rename(text.id, "Title")
    ws.set_locked(text.id)
    ws.toggle_visibility(shape.id)
    assert ws.element(text.id).name == "Title"
    assert ws.element(text.id).locked
    assert ws.element(shape.id).hidden
    assert ws.update_element("missing", x=1) is None


def test_add_image_caps_size() -> None:
    buffer = io.BytesIO()
    Image.new("RGB", (600, 300), "red").save(buffer, format="PNG")
    ws = _workspace()
    image = ws.add_image(buffer.getvalue(), name="logo.png")
    assert (image.width, image.height) == (300, 150)
    assert image.image_url.startswith("data:image/png;base64,")


def test_align_and_distribute_commit_history() -> None:
    ws = _workspace(_el("a", 10, 0), _el("b", 60, 100), _el("c", 400, 200))
    ws.select_all()
    ws.align("left")
    assert {el.x for el in ws.elements} == {10}
    ws.distribute("vertical")
    assert ws.undo()
    assert {el.x for el in ws.elements} == {10}


def test_load_document_validates_first() -> None:
    ws = _workspace(_el("a", 0, 0))
    bad = Document(elements=[_el("x", 0, 0, group_id="nope")])
    with pytest.raises(ValueError):
        ws.load_document(bad)
    assert [el.id for el in ws.elements] == ["a"]

    ws.load_document(Document(elements=[_el("z", 5, 5)], page=Page(559, 794)))
    assert [el.id for el in ws.elements] == ["z"]
    assert ws.page.width == 559
    assert not ws.history.can_undo


def test_overflow_warnings_use_sample_row() -> None:
    from sheetpress.document import Dataset

    element = CanvasElement(id="t", type="text", width=60, height=30, data_binding="bio")
    ws = CanvasWorkspace(Document(elements=[element]), Dataset.from_rows([{"bio": "ok"}, {"bio": "x" * 200}]))
    assert ws.overflow_warnings() == []
    ws.preview_row = 1
    assert ws.overflow_warnings() == ["t"]
