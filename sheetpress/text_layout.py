"""
Text resolution, measurement and wrapping shared by the interactive view,
the overflow estimator and the PDF renderer.

Both renderers get their string from ``resolve_display_text`` so they can
only disagree on line breaks, never on content. Measurement comes in two
flavours: ``HeuristicMeasure`` (average glyph width = 0.6 x font size, an
approximation used for fast overflow warnings) and ``FontMeasure`` (real
glyph metrics from reportlab, used when drawing).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, NamedTuple, Optional, Protocol

from reportlab.pdfbase import pdfmetrics

from . import config
from .document import CanvasElement
from .formatting import format_multiple_bindings, value_to_text


BULLET = "• "
HORIZONTAL_LIST_GAP = "  "
ELLIPSIS = "..."

FONT_FAMILIES = {
    "helvetica": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "times": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}
FAMILY_ALIASES = {
    "arial": "helvetica",
    "helvetica": "helvetica",
    "inter": "helvetica",
    "roboto": "helvetica",
    "open sans": "helvetica",
    "verdana": "helvetica",
    "sans-serif": "helvetica",
    "times": "times",
    "times new roman": "times",
    "georgia": "times",
    "garamond": "times",
    "serif": "times",
    "courier": "courier",
    "courier new": "courier",
    "monospace": "courier",
}
BOLD_WEIGHTS = {"bold", "bolder", "600", "700", "800", "900"}


class Measure(Protocol):
    font_size: float

    def width(self, text: str) -> float: ...


@dataclass(frozen=True)
class HeuristicMeasure:
    """Fixed average glyph width; an estimate, not a rendering guarantee."""

    font_size: float

    @property
    def char_width(self) -> float:
        return self.font_size * config.AVG_CHAR_WIDTH_RATIO

    def width(self, text: str) -> float:
        return len(text) * self.char_width


@dataclass(frozen=True)
class FontMeasure:
    font_name: str
    font_size: float
    letter_spacing: float = 0.0

    def width(self, text: str) -> float:
        base = pdfmetrics.stringWidth(text, self.font_name, self.font_size)
        return base + self.letter_spacing * len(text)

    @property
    def ascent(self) -> float:
        return pdfmetrics.getAscent(self.font_name) * self.font_size / 1000.0

    @property
    def descent(self) -> float:
        # Positive distance below the baseline.
        return -pdfmetrics.getDescent(self.font_name) * self.font_size / 1000.0


def map_font_name(family: Optional[str], weight: Optional[str] = None, style: Optional[str] = None) -> str:
    """Map a CSS font family/weight/style onto one of the standard PDF fonts."""
    key = (family or config.DEFAULT_FONT_FAMILY).split(",")[0].strip().strip("'\"").lower()
    variants = FONT_FAMILIES[FAMILY_ALIASES.get(key, "helvetica")]
    bold = str(weight or "normal").lower() in BOLD_WEIGHTS
    italic = str(style or "normal").lower() in ("italic", "oblique")
    return variants[(1 if bold else 0) + (2 if italic else 0)]


def font_measure_for(element: CanvasElement, font_size: Optional[float] = None) -> FontMeasure:
    style = element.style
    return FontMeasure(
        font_name=map_font_name(style.font_family, style.font_weight, style.font_style),
        font_size=float(font_size or style.font_size_px),
        letter_spacing=float(style.letter_spacing or 0.0),
    )


class ContentBox(NamedTuple):
    left: float
    top: float
    width: float
    height: float


def content_box(element: CanvasElement) -> ContentBox:
    top, right, bottom, left = element.style.paddings
    return ContentBox(
        left=left,
        top=top,
        width=max(0.0, element.width - left - right),
        height=max(0.0, element.height - top - bottom),
    )


def list_items(element: CanvasElement, raw: Any) -> List[str]:
    items = value_to_text(raw).split(element.list_delimiter or ",")
    out: List[str] = []
    for index, item in enumerate(items):
        prefix = ""
        if element.list_style == "bullets":
            prefix = BULLET
        elif element.list_style == "numbers":
            prefix = f"{index + 1}. "
        out.append(prefix + item.strip())
    return out


@dataclass(frozen=True)
class ResolvedText:
    text: str
    hidden: bool = False
    items: Optional[List[str]] = None


def resolve_text(element: CanvasElement, row: Dict[str, Any]) -> ResolvedText:
    """
    Resolve what a text element shows for ``row``.

    Multi-field bindings win over a single binding, which wins over the
    literal content. A bound element that resolves to nothing goes through
    its fallback configuration; without one it shows its literal content.
    """
    if element.type != "text":
        return ResolvedText("")

    items: Optional[List[str]] = None
    if element.data_bindings:
        text = format_multiple_bindings(row, element.data_bindings, element.binding_separator or " ")
    elif element.data_binding:
        raw = row.get(element.data_binding)
        if raw is None or value_to_text(raw) == "":
            text = ""
        elif element.is_list:
            items = list_items(element, raw)
            joiner = HORIZONTAL_LIST_GAP if element.list_layout == "horizontal" else "\n"
            text = joiner.join(items)
        else:
            text = value_to_text(raw)
    else:
        return ResolvedText(element.content or "")

    if text != "":
        return ResolvedText(text, items=items)

    fallback = element.fallback_config
    if fallback is None:
        return ResolvedText(element.content or "")
    if fallback.strategy == "hide":
        return ResolvedText("", hidden=True)
    if fallback.strategy == "default":
        return ResolvedText(fallback.default_value or "")
    return ResolvedText(fallback.placeholder_text or "")


def resolve_display_text(element: CanvasElement, row: Dict[str, Any]) -> str:
    return resolve_text(element, row).text


def chars_per_line(available_width: float, font_size: float) -> int:
    return max(1, math.floor(available_width / (font_size * config.AVG_CHAR_WIDTH_RATIO)))


def estimate_line_count(text: str, available_width: float, font_size: float) -> int:
    per_line = chars_per_line(available_width, font_size)
    return sum(max(1, math.ceil(len(line) / per_line)) for line in text.split("\n"))


def _break_word(word: str, max_width: float, measure: Measure, hyphenate: bool) -> List[str]:
    pieces: List[str] = []
    current = ""
    for char in word:
        candidate = current + char
        probe = candidate + "-" if hyphenate else candidate
        if current and measure.width(probe) > max_width:
            pieces.append(current + "-" if hyphenate else current)
            current = char
        else:
            current = candidate
    if current:
        pieces.append(current)
    return pieces


def wrap_lines(
    text: str,
    max_width: float,
    measure: Measure,
    word_break: str = "word",
    hyphenate: bool = False,
) -> List[str]:
    """Greedy word wrap per paragraph; empty paragraphs keep their blank line."""
    lines: List[str] = []
    for paragraph in text.split("\n"):
        words = paragraph.split()
        if not words:
            lines.append("")
            continue
        line = ""
        for word in words:
            candidate = f"{line} {word}" if line else word
            if measure.width(candidate) <= max_width:
                line = candidate
                continue
            if line:
                lines.append(line)
            line = word
            if word_break == "character" and measure.width(word) > max_width:
                pieces = _break_word(word, max_width, measure, hyphenate)
                lines.extend(pieces[:-1])
                line = pieces[-1]
        lines.append(line)
    return lines


def truncate_line(text: str, max_width: float, measure: Measure) -> str:
    """Single line with a trailing ellipsis when it does not fit."""
    first = text.replace("\n", " ")
    if measure.width(first) <= max_width:
        return first
    while first and measure.width(first + ELLIPSIS) > max_width:
        first = first[:-1]
    return first + ELLIPSIS
