"""
Offline renderer: draws a document row onto a reportlab canvas.

The canvas works in CSS pixels (one unit per px, page size in px). Each
element is drawn in a local frame whose origin is its top-left corner with
y pointing down the page, which is why every local y is negated before it
reaches reportlab.
"""

from __future__ import annotations

import base64
import io
import logging
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from PIL import Image
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .. import config
from ..document import CanvasElement, Document, paint_order
from ..formatting import RowEffects, apply_conditional_rules
from ..overflow import calculate_overflow_style
from ..text_layout import content_box, font_measure_for, resolve_text, truncate_line, wrap_lines


logger = logging.getLogger(__name__)

DASHES = {"dashed": [5, 5], "dotted": [2, 2]}
SHADOW_RE = re.compile(r"(-?\d+(?:\.\d+)?)px\s+(-?\d+(?:\.\d+)?)px(?:\s+\d+(?:\.\d+)?px)?(?:\s+-?\d+(?:\.\d+)?px)?\s*(.*)")
SHADOW_ALPHA = 0.25


def _hex(value: Optional[str], default: Optional[colors.Color] = colors.black) -> Optional[colors.Color]:
    if not value or value == "transparent":
        return default
    try:
        return colors.toColor(value)
    except ValueError:
        return default


def _quad_to(path, x0: float, y0: float, qx: float, qy: float, x2: float, y2: float) -> None:
    # Quadratic corner expressed as the equivalent cubic.
    path.curveTo(
        x0 + 2.0 / 3.0 * (qx - x0),
        y0 + 2.0 / 3.0 * (qy - y0),
        x2 + 2.0 / 3.0 * (qx - x2),
        y2 + 2.0 / 3.0 * (qy - y2),
        x2,
        y2,
    )


def rounded_path(canv: canvas.Canvas, left: float, top: float, width: float, height: float, radii: Tuple[float, ...]):
    """Path of a box with per-corner radii (tl, tr, br, bl) in the local y-down frame."""
    limit = max(0.0, min(width, height) / 2)
    tl, tr, br, bl = (max(0.0, min(r, limit)) for r in radii)
    right, bottom = left + width, top + height
    path = canv.beginPath()
    path.moveTo(left + tl, -top)
    path.lineTo(right - tr, -top)
    if tr:
        _quad_to(path, right - tr, -top, right, -top, right, -(top + tr))
    path.lineTo(right, -(bottom - br))
    if br:
        _quad_to(path, right, -(bottom - br), right, -bottom, right - br, -bottom)
    path.lineTo(left + bl, -bottom)
    if bl:
        _quad_to(path, left + bl, -bottom, left, -bottom, left, -(bottom - bl))
    path.lineTo(left, -(top + tl))
    if tl:
        _quad_to(path, left, -(top + tl), left, -top, left + tl, -top)
    path.close()
    return path


def load_image(url: Optional[str], images: Mapping[str, bytes] | None = None) -> Optional[Image.Image]:
    """Decode a data URL, a pre-fetched remote image or a local file."""
    if not url:
        return None
    data: Optional[bytes] = None
    if url.startswith("data:"):
        _, _, encoded = url.partition(",")
        try:
            data = base64.b64decode(encoded)
        except ValueError:
            logger.warning("Undecodable image data URL")
            return None
    elif images and url in images:
        data = images[url]
    elif Path(url).is_file():
        data = Path(url).read_bytes()
    if data is None:
        logger.warning("Image not available offline: %s", url[:80])
        return None
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except OSError:
        logger.warning("Unreadable image: %s", url[:80])
        return None
    return img


def _draw_shadow(canv: canvas.Canvas, element: CanvasElement) -> None:
    match = SHADOW_RE.match((element.style.box_shadow or "").strip())
    if not match:
        return
    dx, dy = float(match.group(1)), float(match.group(2))
    color = _hex(match.group(3).strip() or None, colors.black)
    canv.saveState()
    canv.setFillColor(color)
    canv.setFillAlpha(SHADOW_ALPHA * element.style.alpha)
    canv.drawPath(rounded_path(canv, dx, dy, element.width, element.height, element.style.radii), stroke=0, fill=1)
    canv.restoreState()


def _draw_text(canv: canvas.Canvas, element: CanvasElement, text: str, effects: RowEffects) -> None:
    style = element.style
    overflow = calculate_overflow_style(element, text)
    font_size = overflow.font_size
    measure = font_measure_for(element, font_size)
    box = content_box(element)

    if overflow.single_line:
        lines = [truncate_line(text, box.width, measure)]
    else:
        lines = wrap_lines(text, box.width, measure, element.word_break, element.hyphenation)

    line_px = font_size * overflow.line_height
    block = line_px * len(lines)
    valign = style.vertical_align or "middle"
    if valign == "top":
        cursor = box.top
    elif valign == "bottom":
        cursor = box.top + box.height - block
    else:
        cursor = box.top + (box.height - block) / 2

    canv.setFillColor(_hex(effects.color or style.color, colors.black))
    canv.setFont(measure.font_name, font_size)
    align = style.text_align or "left"
    decoration = style.text_decoration or "none"
    # CSS half-leading: the glyph box sits centred in its line box.
    glyph = measure.ascent + measure.descent
    for line in lines:
        baseline = cursor + (line_px - glyph) / 2 + measure.ascent
        width = measure.width(line)
        if align == "center":
            x = box.left + (box.width - width) / 2
        elif align == "right":
            x = box.left + box.width - width
        else:
            x = box.left
        canv.drawString(x, -baseline, line, charSpace=measure.letter_spacing)
        if line and decoration in ("underline", "line-through"):
            offset = font_size * 0.1 if decoration == "underline" else -font_size * 0.3
            canv.setStrokeColor(_hex(effects.color or style.color, colors.black))
            canv.setLineWidth(max(1.0, font_size / 15))
            canv.line(x, -(baseline + offset), x + width, -(baseline + offset))
        cursor += line_px


def _draw_image(canv: canvas.Canvas, element: CanvasElement, img: Image.Image) -> None:
    iw, ih = img.size
    w, h = element.width, element.height
    reader = ImageReader(img)
    mode = element.image_fit_mode or "fill"
    if mode == "tile":
        y = 0.0
        while y < h:
            x = 0.0
            while x < w:
                canv.drawImage(reader, x, -(y + ih), iw, ih, mask="auto")
                x += iw
            y += ih
        return
    if mode == "fit":
        scale = min(w / iw, h / ih)
    elif mode == "crop":
        scale = max(w / iw, h / ih)
    else:
        canv.drawImage(reader, 0, -h, w, h, mask="auto")
        return
    dw, dh = iw * scale, ih * scale
    focal = element.image_focal_point or {}
    fx = float(focal.get("x", 50)) / 100 if mode == "crop" else 0.5
    fy = float(focal.get("y", 50)) / 100 if mode == "crop" else 0.5
    x = (w - dw) * fx
    y = (h - dh) * fy
    canv.drawImage(reader, x, -(y + dh), dw, dh, mask="auto")


def _draw_border(canv: canvas.Canvas, element: CanvasElement) -> None:
    style = element.style
    width = float(style.border_width or 0)
    if width <= 0:
        return
    canv.setStrokeColor(_hex(style.border_color, colors.black))
    canv.setLineWidth(width)
    dash = DASHES.get(style.border_style or "solid")
    if dash:
        canv.setDash(dash)
    inset = width / 2
    radii = tuple(max(0.0, r - inset) for r in style.radii)
    path = rounded_path(canv, inset, inset, element.width - width, element.height - width, radii)
    canv.drawPath(path, stroke=1, fill=0)


def draw_element(
    canv: canvas.Canvas,
    element: CanvasElement,
    row: Dict[str, object],
    page_height: float,
    images: Mapping[str, bytes] | None = None,
) -> bool:
    """Draw one element for ``row``. Returns False when the row hides it."""
    if element.hidden:
        return False
    effects = apply_conditional_rules(element, row)
    if effects.hidden:
        return False
    resolved = resolve_text(element, row)
    if resolved.hidden:
        return False

    style = element.style
    canv.saveState()
    canv.translate(element.x + element.width / 2, page_height - element.y - element.height / 2)
    if element.rotation:
        # CSS rotates clockwise, reportlab counter-clockwise.
        canv.rotate(-element.rotation)
    canv.translate(-element.width / 2, element.height / 2)
    canv.setFillAlpha(style.alpha)
    canv.setStrokeAlpha(style.alpha)

    if style.box_shadow:
        _draw_shadow(canv, element)

    outline = rounded_path(canv, 0, 0, element.width, element.height, style.radii)
    clip = element.type != "text" or element.overflow_strategy != "auto-expand"
    canv.saveState()
    if clip:
        canv.clipPath(outline, stroke=0, fill=0)

    background = effects.background or style.background_color
    if element.type == "shape" and not style.background_color and not effects.background:
        background = config.DEFAULT_SHAPE_FILL
    fill = _hex(background, None)
    if fill is not None:
        canv.setFillColor(fill)
        canv.rect(0, -element.height, element.width, element.height, stroke=0, fill=1)

    if element.type == "text" and resolved.text:
        _draw_text(canv, element, resolved.text, effects)
    elif element.type == "image":
        img = load_image(element.image_url, images)
        if img is not None:
            _draw_image(canv, element, img)
    canv.restoreState()

    _draw_border(canv, element)
    canv.restoreState()
    return True


def draw_page(
    canv: canvas.Canvas,
    document: Document,
    row: Dict[str, object],
    images: Mapping[str, bytes] | None = None,
) -> List[str]:
    """Paint the page background and every element back to front; returns drawn ids."""
    page = document.page
    canv.setFillColor(colors.white)
    canv.rect(0, 0, page.width, page.height, stroke=0, fill=1)
    drawn: List[str] = []
    for element in paint_order(document.elements):
        if draw_element(canv, element, row, page.height, images):
            drawn.append(element.id)
    return drawn


def render_vector_page(
    document: Document,
    row: Dict[str, object],
    target,
    images: Mapping[str, bytes] | None = None,
) -> List[str]:
    """Write one row as a single vector page to ``target`` (path or binary stream)."""
    canv = canvas.Canvas(target, pagesize=(document.page.width, document.page.height))
    drawn = draw_page(canv, document, row, images)
    canv.showPage()
    canv.save()
    return drawn
