from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, NamedTuple, Sequence, Tuple

from ..document import CanvasElement, Page


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @classmethod
    def for_page(cls, page: Page) -> "Bounds":
        return cls(0.0, 0.0, page.width, page.height)


def clamp_to_bounds(
    x: float,
    y: float,
    width: float,
    height: float,
    page_width: float,
    page_height: float,
) -> Tuple[float, float]:
    """
    Keep a rectangle inside the page.

    A rectangle larger than the page is pinned to the origin side.
    """
    x = min(x, page_width - width)
    y = min(y, page_height - height)
    return max(0.0, x), max(0.0, y)


def clamp_resize(
    x: float,
    y: float,
    width: float,
    height: float,
    min_width: float,
    min_height: float,
    bounds: Bounds,
    handle: str = "se",
) -> Rect:
    """
    Clamp a resized rectangle to the page and a minimum size.

    ``handle`` names the dragged handle (n, s, e, w or a corner such as
    "nw"). The edges opposite the handle are the anchor and never move; when
    the minimum size wins, the dragged edge is pushed back towards the anchor.
    """
    left, top, right, bottom = x, y, x + width, y + height

    if "w" in handle:
        left = max(bounds.min_x, min(left, right - min_width))
    elif "e" in handle:
        right = min(bounds.max_x, max(right, left + min_width))
    if "n" in handle:
        top = max(bounds.min_y, min(top, bottom - min_height))
    elif "s" in handle:
        bottom = min(bounds.max_y, max(bottom, top + min_height))

    # The anchor itself may sit too close to the page edge to fit the floor.
    new_width = max(min_width, right - left)
    new_height = max(min_height, bottom - top)
    if "w" in handle:
        left = right - new_width
    if "n" in handle:
        top = bottom - new_height
    return Rect(left, top, new_width, new_height)


def elements_bounds(elements: Iterable[CanvasElement]) -> Bounds | None:
    items = list(elements)
    if not items:
        return None
    return Bounds(
        min(el.x for el in items),
        min(el.y for el in items),
        max(el.x + el.width for el in items),
        max(el.y + el.height for el in items),
    )


def group_bounds(elements: Sequence[CanvasElement], element_ids: Iterable[str]) -> Bounds | None:
    wanted = set(element_ids)
    return elements_bounds(el for el in elements if el.id in wanted)


def group_delta(
    elements: Sequence[CanvasElement],
    element_ids: Iterable[str],
    dx: float,
    dy: float,
    bounds: Bounds,
) -> Tuple[float, float]:
    """
    Reduce a translation so the subset's bounding box stays inside ``bounds``.

    Every member then moves by the same delta, so the subset behaves as one
    rigid body. A subset larger than the page is pinned to the origin side.
    """
    origin = group_bounds(elements, element_ids)
    if origin is None:
        return dx, dy

    if origin.max_x + dx > bounds.max_x:
        dx = bounds.max_x - origin.max_x
    if origin.min_x + dx < bounds.min_x:
        dx = bounds.min_x - origin.min_x
    if origin.max_y + dy > bounds.max_y:
        dy = bounds.max_y - origin.max_y
    if origin.min_y + dy < bounds.min_y:
        dy = bounds.min_y - origin.min_y
    return dx, dy
