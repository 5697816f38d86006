from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from ..document import CanvasElement
from .boundaries import elements_bounds


ALIGN_MODES = ("left", "center", "right", "top", "middle", "bottom")


def align_elements(
    elements: Sequence[CanvasElement],
    element_ids: Iterable[str],
    mode: str,
    page_width: float,
    page_height: float,
) -> List[CanvasElement]:
    """
    Line the selected elements up against the selection's own bounding box.

    The page size is accepted for call-site symmetry with the clamp helpers;
    alignment never references the page edges.
    """
    if mode not in ALIGN_MODES:
        raise ValueError(f"Unknown alignment mode: {mode}")
    wanted = set(element_ids)
    bounds = elements_bounds(el for el in elements if el.id in wanted)
    if bounds is None:
        return list(elements)

    aligned: List[CanvasElement] = []
    for el in elements:
        if el.id not in wanted:
            aligned.append(el)
            continue
        if mode == "left":
            el = replace(el, x=bounds.min_x)
        elif mode == "center":
            el = replace(el, x=bounds.min_x + (bounds.width - el.width) / 2)
        elif mode == "right":
            el = replace(el, x=bounds.max_x - el.width)
        elif mode == "top":
            el = replace(el, y=bounds.min_y)
        elif mode == "middle":
            el = replace(el, y=bounds.min_y + (bounds.height - el.height) / 2)
        else:
            el = replace(el, y=bounds.max_y - el.height)
        aligned.append(el)
    return aligned


def distribute_elements(
    elements: Sequence[CanvasElement],
    element_ids: Iterable[str],
    axis: str,
) -> List[CanvasElement]:
    """Space three or more elements evenly along ``axis`` (horizontal or vertical)."""
    wanted = set(element_ids)
    selected = [el for el in elements if el.id in wanted]
    if len(selected) < 3:
        return list(elements)

    horizontal = axis == "horizontal"

    def start(el: CanvasElement) -> float:
        return el.x if horizontal else el.y

    def size(el: CanvasElement) -> float:
        return el.width if horizontal else el.height

    ordered = sorted(selected, key=start)
    first, last = ordered[0], ordered[-1]
    span = start(last) + size(last) - start(first)
    gap = (span - sum(size(el) for el in ordered)) / (len(ordered) - 1)

    positions: Dict[str, float] = {}
    cursor = start(first)
    for el in ordered:
        positions[el.id] = cursor
        cursor += size(el) + gap

    out: List[CanvasElement] = []
    for el in elements:
        if el.id in positions:
            el = replace(el, x=positions[el.id]) if horizontal else replace(el, y=positions[el.id])
        out.append(el)
    return out
