from __future__ import annotations

from sheetpress.document import (
    CanvasElement,
    ConditionalRule,
    Dataset,
    Document,
    ElementGroup,
    ElementStyle,
    Page,
)
from sheetpress.editor.state import InteractionState, Mode, Point
from sheetpress.editor.workspace import CanvasWorkspace
from sheetpress.geometry.boundaries import Rect
from sheetpress.view import render_canvas, render_element, to_html


def test_text_element_style_and_content() -> None:
    element = CanvasElement(
        id="t",
        type="text",
        x=10,
        y=20,
        width=120,
        height=90,
        rotation=15,
        data_binding="name",
        overflow_strategy="auto-shrink",
        style=ElementStyle(font_size=20, border_radius=6, border_top_left_radius=0, opacity=0.5, text_align="center"),
    )
    node = render_element(element, sample_row={"name": "x" * 60})
    assert node is not None
    assert node.style["transform"] == "rotate(15deg)"
    assert node.style["border-radius"] == "0px 6px 6px 6px"
    assert node.style["opacity"] == "0.5"
    text = node.find("text")[0]
    assert text.text == "x" * 60
    assert text.style["font-size"] == "10px"
    assert text.style["text-align"] == "center"
    # Overflow is estimated at the configured size.
    assert node.find("overflow-warning")


def test_drag_offset_and_hidden_warning() -> None:
    element = CanvasElement(id="t", type="text", x=10, y=20, width=30, height=20, data_binding="name")
    dragging = InteractionState(mode=Mode.DRAGGING, start_positions={"t": Point(10, 20)}, drag_offset=Point(5, 7))
    node = render_element(element, sample_row={"name": "y" * 100}, interaction=dragging)
    assert (node.style["left"], node.style["top"]) == ("15px", "27px")
    assert not node.find("overflow-warning")


def test_resize_preview_and_handles() -> None:
    element = CanvasElement(id="s", type="shape", x=10, y=20, width=30, height=20)
    resizing = InteractionState(mode=Mode.RESIZING, target_id="s", resize_preview=Rect(10, 20, 80, 60))
    node = render_element(element, interaction=resizing, selected=True)
    assert (node.style["width"], node.style["height"]) == ("80px", "60px")
    assert node.style["background-color"] == "#e5e7eb"
    assert len(node.find("resize-handle")) == 8

    locked = render_element(CanvasElement(id="l", type="shape", locked=True), selected=True)
    assert not locked.find("resize-handle")


def test_rules_hide_and_recolor() -> None:
    element = CanvasElement(
        id="t",
        type="text",
        content="Total",
        conditional_rules=[
            ConditionalRule(field="qty", operator="equals", action="hide", value="0"),
            ConditionalRule(field="qty", operator="greater_than", action="background", value=100, action_value="#00ff00"),
        ],
    )
    assert render_element(element, sample_row={"qty": "0"}) is None
    node = render_element(element, sample_row={"qty": "150"})
    assert node.style["background-color"] == "#00ff00"
    assert render_element(CanvasElement(id="h", type="shape", hidden=True)) is None


def test_image_fit_modes() -> None:
    base = dict(id="i", type="image", image_url="data:image/png;base64,AAAA")
    fit = render_element(CanvasElement(image_fit_mode="fit", **base)).find("image")[0]
    assert fit.tag == "img"
    assert fit.style["object-fit"] == "contain"
    crop = render_element(CanvasElement(image_fit_mode="crop", image_focal_point={"x": 20, "y": 80}, **base)).find("image")[0]
    assert crop.style["object-fit"] == "cover"
    assert crop.style["object-position"] == "20% 80%"
    tile = render_element(CanvasElement(image_fit_mode="tile", **base)).find("image")[0]
    assert tile.style["background-repeat"] == "repeat"


def test_render_canvas_orders_layers_and_badges_groups() -> None:
    document = Document(
        elements=[
            CanvasElement(id="top", type="shape", layer_index=5, group_id="g"),
            CanvasElement(id="bottom", type="shape", layer_index=1, group_id="g"),
            CanvasElement(id="name", type="text", layer_index=3, data_binding="Name"),
        ],
        groups=[ElementGroup(id="g", name="Logo", element_ids=["top", "bottom"])],
        page=Page(300, 200),
    )
    ws = CanvasWorkspace(document, Dataset.from_rows([{"Name": "<Ada & co>"}]), platform="linux")
    ws.set_zoom(0.5)
    canvas = render_canvas(ws)
    page = canvas.children[0]
    assert [child.attrs["data-id"] for child in page.children] == ["bottom", "name", "top"]
    assert "scale(0.5)" in page.style["transform"]
    assert [badge.text for badge in canvas.find("group-badge")] == ["Logo", "Logo"]

    html = to_html(canvas)
    assert "&lt;Ada &amp; co&gt;" in html
    assert html.startswith('<div class="canvas"')
