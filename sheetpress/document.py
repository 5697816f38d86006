"""
Document model: positioned elements, groups, page and dataset.

The JSON form uses the camelCase keys of the template format
(``layerIndex``, ``dataBindings``, ``borderTopLeftRadius``...), the Python
side uses snake_case attributes. All records are frozen; edits go through
``dataclasses.replace`` so a history snapshot can share unchanged elements.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from . import config


ELEMENT_TYPES = ("text", "shape", "image")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _load(cls, data: Any, nested: Dict[str, Callable[[Any], Any]] | None = None):
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__} must be an object, got {type(data).__name__}")
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        key = _camel(f.name)
        if key not in data:
            continue
        value = data[key]
        if nested and f.name in nested and value is not None:
            value = nested[f.name](value)
        kwargs[f.name] = value
    return cls(**kwargs)


def _dump(obj) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        if hasattr(value, "to_dict"):
            value = value.to_dict()
        elif isinstance(value, list):
            value = [item.to_dict() if hasattr(item, "to_dict") else item for item in value]
            if not value:
                continue
        out[_camel(f.name)] = value
    return out


def _list_of(loader: Callable[[Any], Any]) -> Callable[[Any], List[Any]]:
    def load(values: Any) -> List[Any]:
        if not isinstance(values, list):
            raise ValueError("expected a list")
        return [loader(value) for value in values]

    return load


@dataclass(frozen=True)
class DataBinding:
    field: str
    format: str = "none"
    prefix: str = ""
    suffix: str = ""
    date_format: Optional[str] = None
    currency_symbol: str = "$"
    decimal_places: int = 2
    locale: Optional[str] = None
    thousand_separator: bool = True

    @classmethod
    def from_dict(cls, data: Any) -> "DataBinding":
        binding = _load(cls, data)
        if not isinstance(binding.field, str):
            raise ValueError("binding field must be a string")
        return binding

    def to_dict(self) -> Dict[str, Any]:
        return _dump(self)


@dataclass(frozen=True)
class ConditionalRule:
    field: str
    operator: str
    action: str
    id: str = ""
    value: Any = None
    action_value: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ConditionalRule":
        return _load(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        return _dump(self)


@dataclass(frozen=True)
class FallbackConfig:
    strategy: str = "placeholder"
    placeholder_text: str = ""
    default_value: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> "FallbackConfig":
        return _load(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        return _dump(self)


@dataclass(frozen=True)
class ElementStyle:
    font_size: Optional[float] = None
    font_family: Optional[str] = None
    font_weight: Optional[str] = None
    font_style: Optional[str] = None
    text_decoration: Optional[str] = None
    line_height: Optional[float] = None
    letter_spacing: Optional[float] = None
    color: Optional[str] = None
    background_color: Optional[str] = None
    border_width: Optional[float] = None
    border_color: Optional[str] = None
    border_style: Optional[str] = None
    border_radius: Optional[float] = None
    border_top_left_radius: Optional[float] = None
    border_top_right_radius: Optional[float] = None
    border_bottom_right_radius: Optional[float] = None
    border_bottom_left_radius: Optional[float] = None
    text_align: Optional[str] = None
    vertical_align: Optional[str] = None
    padding: Optional[float] = None
    padding_top: Optional[float] = None
    padding_right: Optional[float] = None
    padding_bottom: Optional[float] = None
    padding_left: Optional[float] = None
    opacity: Optional[float] = None
    box_shadow: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ElementStyle":
        style = _load(cls, data)
        if style.font_weight is not None and not isinstance(style.font_weight, str):
            style = replace(style, font_weight=str(style.font_weight))
        return style

    def to_dict(self) -> Dict[str, Any]:
        return _dump(self)

    @property
    def font_size_px(self) -> float:
        return float(self.font_size or config.DEFAULT_FONT_SIZE)

    @property
    def line_height_ratio(self) -> float:
        return float(self.line_height or config.DEFAULT_LINE_HEIGHT)

    @property
    def radii(self) -> Tuple[float, float, float, float]:
        """Corner radii as (top-left, top-right, bottom-right, bottom-left)."""
        base = self.border_radius or 0.0
        corners = (
            self.border_top_left_radius,
            self.border_top_right_radius,
            self.border_bottom_right_radius,
            self.border_bottom_left_radius,
        )
        return tuple(float(base if value is None else value) for value in corners)  # type: ignore[return-value]

    @property
    def paddings(self) -> Tuple[float, float, float, float]:
        """Padding as (top, right, bottom, left)."""
        base = self.padding or 0.0
        sides = (self.padding_top, self.padding_right, self.padding_bottom, self.padding_left)
        return tuple(float(base if value is None else value) for value in sides)  # type: ignore[return-value]

    @property
    def alpha(self) -> float:
        return 1.0 if self.opacity is None else max(0.0, min(1.0, float(self.opacity)))


@dataclass(frozen=True)
class CanvasElement:
    id: str
    type: str
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 40.0
    rotation: float = 0.0
    layer_index: float = 0
    name: Optional[str] = None
    group_id: Optional[str] = None
    locked: bool = False
    hidden: bool = False
    content: str = ""
    data_binding: Optional[str] = None
    data_bindings: List[DataBinding] = field(default_factory=list)
    binding_separator: str = " "
    is_list: bool = False
    list_delimiter: str = ","
    list_layout: str = "vertical"
    list_style: str = "none"
    overflow_strategy: str = "wrap"
    min_font_size: Optional[float] = None
    hyphenation: bool = False
    word_break: str = "word"
    fallback_config: Optional[FallbackConfig] = None
    conditional_rules: List[ConditionalRule] = field(default_factory=list)
    image_url: Optional[str] = None
    image_fit_mode: str = "fill"
    image_focal_point: Optional[Dict[str, float]] = None
    alt_text: Optional[str] = None
    style: ElementStyle = field(default_factory=ElementStyle)

    @classmethod
    def from_dict(cls, data: Any) -> "CanvasElement":
        element = _load(
            cls,
            data,
            nested={
                "data_bindings": _list_of(DataBinding.from_dict),
                "conditional_rules": _list_of(ConditionalRule.from_dict),
                "fallback_config": FallbackConfig.from_dict,
                "style": ElementStyle.from_dict,
            },
        )
        if not isinstance(element.id, str) or not element.id:
            raise ValueError("element id must be a non-empty string")
        if element.type not in ELEMENT_TYPES:
            raise ValueError(f"Unsupported element type: {element.type!r}")
        return replace(
            element,
            x=float(element.x),
            y=float(element.y),
            width=float(element.width),
            height=float(element.height),
            rotation=float(element.rotation or 0),
            layer_index=element.layer_index or 0,
            style=element.style or ElementStyle(),
            content=element.content or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return _dump(self)

    @property
    def is_bound(self) -> bool:
        return bool(self.data_bindings) or bool(self.data_binding)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


def paint_order(elements: Iterable[CanvasElement]) -> List[CanvasElement]:
    """Back-to-front order: ascending layerIndex, ties broken by list position."""
    indexed = list(enumerate(elements))
    indexed.sort(key=lambda pair: (pair[1].layer_index, pair[0]))
    return [element for _, element in indexed]


@dataclass(frozen=True)
class ElementGroup:
    id: str
    name: str = ""
    element_ids: List[str] = field(default_factory=list)
    locked: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> "ElementGroup":
        group = _load(cls, data)
        if not isinstance(group.element_ids, list):
            raise ValueError("group elementIds must be a list")
        return group

    def to_dict(self) -> Dict[str, Any]:
        out = _dump(self)
        out["elementIds"] = list(self.element_ids)
        return out


@dataclass(frozen=True)
class Page:
    width: float
    height: float

    @property
    def orientation(self) -> str:
        return "landscape" if self.width > self.height else "portrait"

    @classmethod
    def preset(cls, name: str, orientation: str = "portrait") -> "Page":
        width, height = config.PAGE_SIZES[name]
        if orientation == "landscape":
            width, height = height, width
        return cls(float(width), float(height))


@dataclass
class Document:
    elements: List[CanvasElement] = field(default_factory=list)
    groups: List[ElementGroup] = field(default_factory=list)
    page: Page = field(default_factory=lambda: Page.preset(config.DEFAULT_PAGE))

    def element(self, element_id: str) -> Optional[CanvasElement]:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    def group(self, group_id: str | None) -> Optional[ElementGroup]:
        if group_id is None:
            return None
        for group in self.groups:
            if group.id == group_id:
                return group
        return None

    def validate(self) -> None:
        ids = [element.id for element in self.elements]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate element ids")
        known = set(ids)
        group_ids = {group.id for group in self.groups}
        for group in self.groups:
            missing = [eid for eid in group.element_ids if eid not in known]
            if missing:
                raise ValueError(f"Group {group.id} references missing elements: {', '.join(missing)}")
        for element in self.elements:
            if element.group_id is not None and element.group_id not in group_ids:
                raise ValueError(f"Element {element.id} references missing group {element.group_id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageWidth": self.page.width,
            "pageHeight": self.page.height,
            "orientation": self.page.orientation,
            "elements": [element.to_dict() for element in self.elements],
            "groups": [group.to_dict() for group in self.groups],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Document":
        if not isinstance(data, dict):
            raise ValueError("document must be an object")
        elements = _list_of(CanvasElement.from_dict)(data.get("elements", []))
        groups = _list_of(ElementGroup.from_dict)(data.get("groups", []))
        width = data.get("pageWidth")
        height = data.get("pageHeight")
        if width is None or height is None:
            page = Page.preset(config.DEFAULT_PAGE, data.get("orientation", "portrait"))
        else:
            page = Page(float(width), float(height))
        document = cls(elements=elements, groups=groups, page=page)
        document.validate()
        return document


@dataclass
class Dataset:
    headers: List[str] = field(default_factory=list)
    rows: List[Dict[str, Any]] = field(default_factory=list)

    def sample_row(self, index: int = 0) -> Dict[str, Any]:
        if 0 <= index < len(self.rows):
            return self.rows[index]
        return {}

    @classmethod
    def from_rows(cls, rows: Iterable[Dict[str, Any]]) -> "Dataset":
        rows = list(rows)
        headers: List[str] = []
        for row in rows:
            for key in row:
                if key not in headers:
                    headers.append(key)
        return cls(headers=headers, rows=rows)
