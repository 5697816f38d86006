from __future__ import annotations

import itertools

from sheetpress.document import CanvasElement
from sheetpress.geometry.alignment import align_elements, distribute_elements
from sheetpress.geometry.boundaries import Bounds, clamp_resize, clamp_to_bounds, group_bounds, group_delta


PAGE = Bounds(0.0, 0.0, 794.0, 1123.0)


def _el(eid: str, x: float, y: float, w: float = 100, h: float = 50) -> CanvasElement:
    return CanvasElement(id=eid, type="shape", x=x, y=y, width=w, height=h)


def test_clamp_to_bounds_keeps_rect_on_page() -> None:
    assert clamp_to_bounds(700, 1050, 150, 100, 794, 1123) == (644, 1023)
    assert clamp_to_bounds(-20, -5, 100, 100, 794, 1123) == (0, 0)
    # Larger than the page: pinned to the origin.
    assert clamp_to_bounds(50, 50, 1000, 100, 794, 1123) == (0, 50)


def test_group_delta_clamps_whole_subset() -> None:
    elements = [_el("a", 600, 100), _el("b", 650, 200), _el("c", 10, 10)]
    dx, dy = group_delta(elements, ["a", "b"], 100, -500, PAGE)
    assert dx == 794 - 750
    assert dy == -100
    # Unrelated elements do not limit the move.
    assert group_delta(elements, ["c"], -100, 0, PAGE) == (-10, 0)
    assert group_bounds(elements, ["a", "b"]) == Bounds(600, 100, 750, 250)
    assert group_bounds(elements, ["ghost"]) is None


def test_group_rigidity_for_any_delta() -> None:
    elements = [_el("a", 100, 100), _el("b", 300, 400, 200, 80), _el("c", 50, 900)]
    ids = ["a", "b", "c"]
    for dx, dy in itertools.product((-1000, -75, 0, 33, 800), (-1000, -10, 0, 150, 2000)):
        cdx, cdy = group_delta(elements, ids, dx, dy, PAGE)
        moved = [CanvasElement(id=el.id, type=el.type, x=el.x + cdx, y=el.y + cdy, width=el.width, height=el.height) for el in elements]
        for before, after in zip(elements, moved):
            assert after.x - before.x == cdx
            assert after.y - before.y == cdy
        bounds = group_bounds(moved, ids)
        assert bounds is not None
        assert bounds.min_x >= 0 and bounds.min_y >= 0
        assert bounds.max_x <= PAGE.max_x and bounds.max_y <= PAGE.max_y


def test_clamp_resize_respects_floor_for_any_delta() -> None:
    for handle in ("nw", "n", "ne", "e", "se", "s", "sw", "w"):
        for delta in (-5000, -130, -95, -1, 0, 7, 400, 5000):
            x, y, w, h = 100, 100, 100, 100
            if "e" in handle:
                w += delta
            if "w" in handle:
                x += delta
                w -= delta
            if "s" in handle:
                h += delta
            if "n" in handle:
                y += delta
                h -= delta
            rect = clamp_resize(x, y, w, h, 20, 20, PAGE, handle)
            assert rect.width >= 20
            assert rect.height >= 20


def test_clamp_resize_keeps_anchor_edge() -> None:
    # Dragging the west handle far right: the east edge (200) stays put.
    rect = clamp_resize(400, 100, -200, 100, 20, 20, PAGE, "w")
    assert rect.x + rect.width == 200
    assert rect.width == 20
    # South-east corner past the page is clipped to the page.
    rect = clamp_resize(700, 1000, 300, 300, 20, 20, PAGE, "se")
    assert (rect.x, rect.y) == (700, 1000)
    assert rect.x + rect.width == 794
    assert rect.y + rect.height == 1123


def test_alignment_is_idempotent() -> None:
    elements = [_el("a", 10, 10), _el("b", 200, 80, 40, 30), _el("c", 90, 300, 70, 10)]
    for mode in ("left", "center", "right", "top", "middle", "bottom"):
        once = align_elements(elements, ["a", "b", "c"], mode, 794, 1123)
        twice = align_elements(once, ["a", "b", "c"], mode, 794, 1123)
        assert once == twice


def test_align_left_uses_selection_bounds() -> None:
    elements = [_el("a", 50, 10), _el("b", 200, 80), _el("c", 5, 5)]
    aligned = align_elements(elements, ["a", "b"], "left", 794, 1123)
    assert [el.x for el in aligned] == [50, 50, 5]


def test_distribute_needs_three_and_spaces_evenly() -> None:
    two = [_el("a", 0, 0), _el("b", 300, 0)]
    assert distribute_elements(two, ["a", "b"], "horizontal") == two

    elements = [_el("a", 0, 0, 100), _el("b", 120, 0, 50), _el("c", 400, 0, 100)]
    spread = distribute_elements(elements, ["a", "b", "c"], "horizontal")
    xs = {el.id: el.x for el in spread}
    # Span 500, widths 250 -> two gaps of 125.
    assert xs == {"a": 0, "b": 225, "c": 400}
