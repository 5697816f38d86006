"""
Overflow estimation for bound text.

The estimate uses the average-glyph heuristic from ``text_layout`` so it can
scan a whole dataset cheaply before a batch export. The PDF renderer does
real measurement, so near the boundary the two may disagree on whether a
line fits; they always agree on the resolved string and the box.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Dict, Sequence

from . import config
from .document import CanvasElement
from .text_layout import chars_per_line, content_box, estimate_line_count, resolve_display_text


STRATEGIES = ("wrap", "auto-shrink", "truncate", "scale-line-height", "auto-expand")


@dataclass(frozen=True)
class OverflowEstimate:
    will_overflow: bool
    current_length: int
    estimated_max_length: int
    total_lines: int = 0
    max_lines: int = 0
    chars_per_line: int = 0


@dataclass(frozen=True)
class MaxDataLength:
    max_length: int
    max_row: int
    will_overflow: bool


def _capacity(element: CanvasElement, font_size: float, line_height: float) -> tuple[int, int]:
    box = content_box(element)
    per_line = chars_per_line(box.width, font_size)
    max_lines = max(0, math.floor(box.height / (font_size * line_height)))
    return per_line, max_lines


def estimate_text(element: CanvasElement, text: str) -> OverflowEstimate:
    style = element.style
    font_size = style.font_size_px
    per_line, max_lines = _capacity(element, font_size, style.line_height_ratio)
    total_lines = estimate_line_count(text, content_box(element).width, font_size)
    return OverflowEstimate(
        will_overflow=total_lines > max_lines,
        current_length=len(text),
        estimated_max_length=math.floor(per_line * max_lines * config.OVERFLOW_SAFETY_MARGIN),
        total_lines=total_lines,
        max_lines=max_lines,
        chars_per_line=per_line,
    )


def estimate_text_overflow(element: CanvasElement, row: Dict[str, Any]) -> OverflowEstimate:
    if element.type != "text":
        return OverflowEstimate(will_overflow=False, current_length=0, estimated_max_length=0)
    return estimate_text(element, resolve_display_text(element, row))


def find_max_data_length(element: CanvasElement, rows: Sequence[Dict[str, Any]]) -> MaxDataLength:
    """
    Scan every row for the longest resolved text.

    Returns the first row with the greatest length and whether that row
    overflows, so a batch export can warn without rendering every page.
    """
    if not element.is_bound:
        return MaxDataLength(max_length=0, max_row=0, will_overflow=False)
    worst = MaxDataLength(max_length=0, max_row=0, will_overflow=False)
    for index, row in enumerate(rows):
        result = estimate_text_overflow(element, row)
        if result.current_length > worst.max_length:
            worst = MaxDataLength(result.current_length, index, result.will_overflow)
    return worst


@dataclass(frozen=True)
class OverflowStyle:
    font_size: float
    line_height: float
    overflow: str = "hidden"
    overflow_y: str = "hidden"
    text_overflow: str = "clip"
    white_space: str = "normal"
    word_break: str = "break-word"
    hyphens: str = "none"
    display: str = "flex"
    clip: bool = True
    single_line: bool = False

    def css(self) -> Dict[str, str]:
        return {
            "font-size": f"{self.font_size:g}px",
            "line-height": f"{self.line_height:g}",
            "overflow": self.overflow,
            "overflow-y": self.overflow_y,
            "text-overflow": self.text_overflow,
            "white-space": self.white_space,
            "word-break": self.word_break,
            "hyphens": self.hyphens,
            "display": self.display,
        }


def calculate_overflow_style(element: CanvasElement, text: str) -> OverflowStyle:
    strategy = element.overflow_strategy or "wrap"
    style = element.style
    font_size = style.font_size_px
    line_height = style.line_height_ratio
    floor = element.min_font_size or config.DEFAULT_MIN_FONT_SIZE

    base = OverflowStyle(
        font_size=font_size,
        line_height=line_height,
        word_break="break-all" if element.word_break == "character" else "break-word",
        hyphens="auto" if element.hyphenation else "none",
    )

    if strategy == "auto-shrink":
        estimate = estimate_text(element, text)
        if estimate.total_lines > estimate.max_lines:
            shrunk = font_size * estimate.max_lines / estimate.total_lines
            return replace(base, font_size=max(floor, shrunk))
        return base

    if strategy == "truncate":
        return replace(
            base,
            white_space="nowrap",
            text_overflow="ellipsis",
            display="block",
            single_line=True,
        )

    if strategy == "scale-line-height":
        box = content_box(element)
        needed = estimate_line_count(text, box.width, font_size)
        if needed * font_size * line_height > box.height and needed > 0:
            return replace(base, line_height=max(1.0, box.height / (needed * font_size)))
        return base

    if strategy == "auto-expand":
        return replace(base, overflow="visible", overflow_y="auto", clip=False)

    return base
