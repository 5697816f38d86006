"""
Interactive renderer.

Builds a small node tree (tag, inline style, attributes, children) for the
editor canvas and serialises it to HTML for the ``preview`` command. Text
comes from the same ``text_layout.resolve_text`` the PDF renderer uses, so
the canvas and the export never disagree on what a field shows.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from . import config
from .document import CanvasElement, ElementGroup, paint_order
from .editor.state import RESIZE_HANDLES, InteractionState, ViewState
from .formatting import apply_conditional_rules
from .overflow import calculate_overflow_style, estimate_text
from .text_layout import resolve_text


OBJECT_FIT = {"fill": "fill", "fit": "contain", "crop": "cover"}
JUSTIFY = {"top": "flex-start", "middle": "center", "bottom": "flex-end"}
VOID_TAGS = {"img"}


@dataclass
class RenderNode:
    tag: str
    style: Dict[str, str] = field(default_factory=dict)
    attrs: Dict[str, str] = field(default_factory=dict)
    children: List["RenderNode"] = field(default_factory=list)
    text: Optional[str] = None

    def find(self, cls: str) -> List["RenderNode"]:
        """All descendants (self included) carrying the CSS class ``cls``."""
        out: List[RenderNode] = []
        if cls in self.attrs.get("class", "").split():
            out.append(self)
        for child in self.children:
            out.extend(child.find(cls))
        return out


def _px(value: float) -> str:
    return f"{value:g}px"


def _radius(element: CanvasElement) -> str:
    return " ".join(_px(r) for r in element.style.radii)


def _box_style(element: CanvasElement, x: float, y: float, width: float, height: float) -> Dict[str, str]:
    style = element.style
    css = {
        "position": "absolute",
        "left": _px(x),
        "top": _px(y),
        "width": _px(width),
        "height": _px(height),
        "z-index": f"{element.layer_index:g}",
        "opacity": f"{style.alpha:g}",
        "box-sizing": "border-box",
    }
    if element.rotation:
        css["transform"] = f"rotate({element.rotation:g}deg)"
    if any(style.radii):
        css["border-radius"] = _radius(element)
    if style.box_shadow:
        css["box-shadow"] = style.box_shadow
    if style.border_width:
        css["border"] = f"{_px(style.border_width)} {style.border_style or 'solid'} {style.border_color or '#000000'}"
    top, right, bottom, left = style.paddings
    if any((top, right, bottom, left)):
        css["padding"] = " ".join(_px(v) for v in (top, right, bottom, left))
    return css


def _text_children(element: CanvasElement, text: str, items: Optional[List[str]], color: Optional[str]) -> List[RenderNode]:
    style = element.style
    overflow = calculate_overflow_style(element, text)
    css = overflow.css()
    css.update(
        {
            "font-family": style.font_family or config.DEFAULT_FONT_FAMILY,
            "font-weight": style.font_weight or "normal",
            "font-style": style.font_style or "normal",
            "color": color or style.color or config.DEFAULT_TEXT_COLOR,
            "text-align": style.text_align or "left",
            "text-decoration": style.text_decoration or "none",
            "letter-spacing": _px(style.letter_spacing or 0),
            "width": "100%",
            "height": "100%",
        }
    )
    if overflow.display == "flex":
        css["flex-direction"] = "column"
        css["justify-content"] = JUSTIFY.get(style.vertical_align or "middle", "center")

    if items is not None and element.list_layout != "horizontal":
        lines = [RenderNode("div", attrs={"class": "list-item"}, text=item) for item in items]
        return [RenderNode("div", style=css, attrs={"class": "text"}, children=lines)]
    if overflow.single_line:
        inner = RenderNode(
            "span",
            style={"overflow": "hidden", "text-overflow": "ellipsis", "white-space": "nowrap", "display": "block"},
            text=text,
        )
        return [RenderNode("div", style=css, attrs={"class": "text"}, children=[inner])]
    css["white-space"] = "pre-wrap" if overflow.white_space == "normal" else overflow.white_space
    return [RenderNode("div", style=css, attrs={"class": "text"}, text=text)]


def _image_children(element: CanvasElement) -> List[RenderNode]:
    if not element.image_url:
        return [RenderNode("div", attrs={"class": "image-placeholder"}, text=element.alt_text or "Image")]
    mode = element.image_fit_mode or "fill"
    if mode == "tile":
        css = {
            "width": "100%",
            "height": "100%",
            "background-image": f"url({element.image_url})",
            "background-repeat": "repeat",
        }
        return [RenderNode("div", style=css, attrs={"class": "image"})]
    css = {"width": "100%", "height": "100%", "object-fit": OBJECT_FIT.get(mode, "fill")}
    focal = element.image_focal_point
    if focal and mode == "crop":
        css["object-position"] = f"{focal.get('x', 50):g}% {focal.get('y', 50):g}%"
    attrs = {"class": "image", "src": element.image_url, "alt": element.alt_text or element.name or ""}
    return [RenderNode("img", style=css, attrs=attrs)]


def render_element(
    element: CanvasElement,
    view: ViewState | None = None,
    sample_row: Dict[str, Any] | None = None,
    groups: Sequence[ElementGroup] = (),
    interaction: InteractionState | None = None,
    selected: bool = False,
) -> Optional[RenderNode]:
    """
    Render one element, or None when it is hidden for this row.

    Live drag offsets and resize previews from ``interaction`` are applied on
    top of the committed geometry.
    """
    row = sample_row or {}
    interaction = interaction or InteractionState()
    if element.hidden:
        return None
    effects = apply_conditional_rules(element, row)
    if effects.hidden:
        return None

    x, y, width, height = element.x, element.y, element.width, element.height
    dragging = interaction.moving(element.id)
    if dragging:
        x += interaction.drag_offset.x
        y += interaction.drag_offset.y
    preview = interaction.resize_preview
    if interaction.is_resizing and interaction.target_id == element.id and preview is not None:
        x, y, width, height = preview

    css = _box_style(element, x, y, width, height)
    background = effects.background or element.style.background_color
    if element.type == "shape" and not background:
        background = config.DEFAULT_SHAPE_FILL
    if background:
        css["background-color"] = background

    classes = ["element", f"element-{element.type}"]
    if selected:
        classes.append("selected")
    if element.locked:
        classes.append("locked")
    if dragging:
        classes.append("dragging")
    node = RenderNode("div", style=css, attrs={"class": " ".join(classes), "data-id": element.id})

    if element.type == "text":
        resolved = resolve_text(element, row)
        if resolved.hidden:
            return None
        node.children.extend(_text_children(element, resolved.text, resolved.items, effects.color))
        if (
            element.is_bound
            and not interaction.is_dragging
            and estimate_text(element, resolved.text).will_overflow
        ):
            node.children.append(RenderNode("span", attrs={"class": "overflow-warning", "title": "Text overflows"}, text="!"))
    elif element.type == "image":
        node.children.extend(_image_children(element))
    if element.type != "text" or element.overflow_strategy != "auto-expand":
        css["overflow"] = "hidden"

    group = next((g for g in groups if g.id == element.group_id), None)
    if group is not None:
        node.children.append(RenderNode("span", attrs={"class": "group-badge"}, text=group.name or "Group"))

    if selected and not element.locked:
        # Handles keep a constant on-screen size whatever the zoom.
        size = _px(8 / (view.zoom if view else 1.0))
        for handle in RESIZE_HANDLES:
            node.children.append(RenderNode("div", style={"width": size, "height": size}, attrs={"class": f"resize-handle handle-{handle}", "data-handle": handle}))
    return node


def render_canvas(workspace) -> RenderNode:
    """Render the page and every element of a ``CanvasWorkspace`` back to front."""
    view = workspace.view
    page = workspace.page
    selected = set(workspace.selection)
    page_node = RenderNode(
        "div",
        style={
            "position": "relative",
            "width": _px(page.width),
            "height": _px(page.height),
            "background-color": "#ffffff",
            "transform": f"translate({_px(view.pan.x)}, {_px(view.pan.y)}) scale({view.zoom:g})",
            "transform-origin": "0 0",
        },
        attrs={"class": "page", "data-orientation": page.orientation},
    )
    for element in paint_order(workspace.elements):
        node = render_element(
            element,
            view,
            workspace.sample_row,
            workspace.groups,
            interaction=workspace.state,
            selected=element.id in selected,
        )
        if node is not None:
            page_node.children.append(node)
    cursor = "grab" if view.space_held or view.pan_mode else "default"
    return RenderNode("div", style={"position": "relative", "overflow": "hidden", "cursor": cursor}, attrs={"class": "canvas"}, children=[page_node])


def _style_attr(style: Dict[str, str]) -> str:
    return "; ".join(f"{key}: {value}" for key, value in style.items())


def to_html(node: RenderNode) -> str:
    attrs = dict(node.attrs)
    if node.style:
        attrs["style"] = _style_attr(node.style)
    rendered = "".join(f' {key}="{html.escape(str(value), quote=True)}"' for key, value in attrs.items())
    if node.tag in VOID_TAGS:
        return f"<{node.tag}{rendered}>"
    body = html.escape(node.text) if node.text is not None else ""
    body += "".join(to_html(child) for child in node.children)
    return f"<{node.tag}{rendered}>{body}</{node.tag}>"


def html_page(node: RenderNode, title: str = "sheetpress preview") -> str:
    return (
        "<!DOCTYPE html>\n<html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head><body>{to_html(node)}</body></html>\n"
    )
