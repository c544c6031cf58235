"""
Document Model.

A Document is a PrintSpecification (named sides with trim/bleed/safe in mm,
plus a DPI) and an ordered list of pages, one per side. Each page holds an
ordered list of elements; list order is paint order (first = bottom).

All element geometry is millimeters relative to the trim's top-left corner.
Negative coordinates reach into the bleed.

document_from_dict() accepts the editor's JSON (camelCase or snake_case):

    {
      "printSpec": {"trimW_mm": 152, "trimH_mm": 102, "bleed_mm": 3,
                    "safe_mm": 5, "dpi": 300},
      "pages": [{"id": "front", "elements": [{"type": "text", ...}]}]
    }

or the per-side form where printSpec carries
"sides": [{"id", "name", "trim_mm": {"w", "h"}, "bleed_mm", "safe_mm"}].
"""
import math
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

from constants import (
    DEFAULT_DPI,
    DEFAULT_FILL,
    DEFAULT_FONT_FAMILY,
    DEFAULT_LABEL_FILL,
)
from services.printing.errors import InvalidDocumentError, InvalidGeometryError
from utils.units import Rect


# -----------------------------------------------------------------------------
# Print specification
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class TrimSize:
    w: float
    h: float


@dataclass(frozen=True)
class PrintSide:
    id: str
    trim_mm: TrimSize
    bleed_mm: float
    safe_mm: float
    name: Optional[str] = None
    # Rounded-corner products (die-cut cards); 0 = square corners
    corner_radius_mm: float = 0.0

    @property
    def label(self) -> str:
        return self.name or self.id

    def canvas_mm(self, include_bleed: bool) -> tuple[float, float]:
        extra = 2 * self.bleed_mm if include_bleed else 0.0
        return self.trim_mm.w + extra, self.trim_mm.h + extra

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "trim_mm": {"w": self.trim_mm.w, "h": self.trim_mm.h},
            "bleed_mm": self.bleed_mm,
            "safe_mm": self.safe_mm,
            "corner_radius_mm": self.corner_radius_mm,
        }


@dataclass(frozen=True)
class PrintSpecification:
    sides: tuple[PrintSide, ...]
    dpi: int = DEFAULT_DPI

    @property
    def side_ids(self) -> list[str]:
        return [s.id for s in self.sides]

    def side(self, side_id: str) -> Optional[PrintSide]:
        for s in self.sides:
            if s.id == side_id:
                return s
        return None

    def to_dict(self) -> dict:
        return {"dpi": self.dpi, "sideIds": self.side_ids, "sides": [s.to_dict() for s in self.sides]}


# -----------------------------------------------------------------------------
# Elements
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Stroke:
    width_mm: float
    color: str = "#000000"


@dataclass(frozen=True)
class TextProps:
    text: str
    font_size_pt: float
    font_family: str = DEFAULT_FONT_FAMILY
    font_weight: int = 400
    fill: str = DEFAULT_FILL
    align: str = "center"


@dataclass(frozen=True)
class TextElement:
    type: ClassVar[str] = "text"

    id: str
    x_mm: float
    y_mm: float
    text: str
    font_size_pt: float
    w_mm: Optional[float] = None
    h_mm: Optional[float] = None
    font_family: str = DEFAULT_FONT_FAMILY
    font_weight: int = 400
    fill: str = DEFAULT_FILL
    align: str = "left"
    line_height: float = 1.2


@dataclass(frozen=True)
class LabelElement:
    """A text container with a background/border shape behind the text."""
    type: ClassVar[str] = "label"

    id: str
    x_mm: float
    y_mm: float
    w_mm: float
    h_mm: float
    text_props: TextProps
    shape_preset: str = "rounded-rect"
    padding_mm: float = 0.0
    corner_radius_mm: float = 0.0
    stroke: Optional[Stroke] = None
    fill: str = DEFAULT_LABEL_FILL


@dataclass(frozen=True)
class ImageElement:
    type: ClassVar[str] = "image"

    id: str
    x_mm: float
    y_mm: float
    w_mm: float
    h_mm: float
    asset_ref: str
    # normalized (0-1) crop of the source image, applied before scaling
    crop_rect: Optional[Rect] = None
    # "fill" stretches to the rect; "fit" letterboxes on white
    fit_mode: str = "fill"
    opacity: float = 1.0


SHAPE_KINDS = frozenset({"rect", "border", "ellipse", "line"})


@dataclass(frozen=True)
class ShapeElement:
    type: ClassVar[str] = "shape"

    id: str
    x_mm: float
    y_mm: float
    w_mm: float
    h_mm: float
    kind: str = "rect"
    fill: Optional[str] = None
    stroke: Optional[Stroke] = None


Element = Union[TextElement, LabelElement, ImageElement, ShapeElement]
ELEMENT_TYPES = (TextElement, LabelElement, ImageElement, ShapeElement)


def element_rect_mm(element: Element) -> Rect:
    """
    The element's rectangle in trim-relative mm.

    Text may omit w/h; the caller decides what an unbounded text box means,
    so zero is returned for those. Everything else is required and must be
    finite.
    """
    x = _require_finite(element, "x_mm", element.x_mm)
    y = _require_finite(element, "y_mm", element.y_mm)
    if isinstance(element, TextElement):
        w = _require_finite(element, "w_mm", element.w_mm) if element.w_mm is not None else 0.0
        h = _require_finite(element, "h_mm", element.h_mm) if element.h_mm is not None else 0.0
    else:
        w = _require_finite(element, "w_mm", element.w_mm)
        h = _require_finite(element, "h_mm", element.h_mm)
    if w < 0 or h < 0:
        raise InvalidGeometryError(element.id, "size", (w, h))
    return Rect(x, y, w, h)


def _require_finite(element, name, value) -> float:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidGeometryError(element.id, name, value)
    if not math.isfinite(value):
        raise InvalidGeometryError(element.id, name, value)
    return float(value)


# -----------------------------------------------------------------------------
# Pages / document
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Page:
    id: str
    elements: tuple[Element, ...] = field(default_factory=tuple)
    name: Optional[str] = None


@dataclass(frozen=True)
class Document:
    print_spec: PrintSpecification
    pages: tuple[Page, ...]

    @property
    def page_ids(self) -> list[str]:
        return [p.id for p in self.pages]

    def page(self, page_id: str) -> Optional[Page]:
        for p in self.pages:
            if p.id == page_id:
                return p
        return None


# -----------------------------------------------------------------------------
# Parsing
# -----------------------------------------------------------------------------
def _get(data, *keys, default=None):
    """First present key wins; lets callers send camelCase or snake_case."""
    for k in keys:
        if k in data and data[k] is not None:
            return data[k]
    return default


def _number(value, path, default=None, required=False):
    if value is None:
        if required:
            raise InvalidDocumentError("is required", field=path)
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidDocumentError(f"must be a number, got {value!r}", field=path)
    if not math.isfinite(value):
        raise InvalidDocumentError(f"must be finite, got {value!r}", field=path)
    return float(value)


def _geometry(raw, element_id, name, *keys, required=True):
    value = _get(raw, *keys)
    if value is None:
        if required:
            raise InvalidGeometryError(element_id, name, None)
        return None
    if isinstance(value, bool):
        raise InvalidGeometryError(element_id, name, value)
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidGeometryError(element_id, name, value)
    if not math.isfinite(value):
        raise InvalidGeometryError(element_id, name, value)
    return value


def _stroke_from_dict(raw, path):
    if not raw:
        return None
    if isinstance(raw, dict):
        if raw.get("enabled") is False:
            return None
        width = _number(_get(raw, "width_mm", "widthMm"), f"{path}.width_mm", default=0.5)
        return Stroke(width_mm=width, color=_get(raw, "color", default="#000000"))
    raise InvalidDocumentError("must be an object", field=path)


def _side_from_dict(raw, path) -> PrintSide:
    side_id = _get(raw, "id")
    if not side_id:
        raise InvalidDocumentError("is required", field=f"{path}.id")
    trim = _get(raw, "trim_mm", "trimMm")
    if not isinstance(trim, dict):
        raise InvalidDocumentError("must be an object with w/h", field=f"{path}.trim_mm")
    return PrintSide(
        id=str(side_id),
        name=_get(raw, "name"),
        trim_mm=TrimSize(
            w=_number(trim.get("w"), f"{path}.trim_mm.w", required=True),
            h=_number(trim.get("h"), f"{path}.trim_mm.h", required=True),
        ),
        bleed_mm=_number(_get(raw, "bleed_mm", "bleedMm"), f"{path}.bleed_mm", default=0.0),
        safe_mm=_number(_get(raw, "safe_mm", "safeMm"), f"{path}.safe_mm", default=0.0),
        corner_radius_mm=_number(_get(raw, "corner_radius_mm", "cornerRadiusMm"),
                                 f"{path}.corner_radius_mm", default=0.0),
    )


def print_spec_from_dict(raw, page_ids=(), page_names=None) -> PrintSpecification:
    """
    Parse either print spec form.

    The flat form (one trim for the whole product) yields one side per page
    id, which is how the export endpoint has always treated it.
    """
    if not isinstance(raw, dict):
        raise InvalidDocumentError("must be an object", field="printSpec")
    page_names = page_names or {}
    dpi = int(_number(raw.get("dpi"), "printSpec.dpi", default=DEFAULT_DPI))
    if dpi <= 0:
        raise InvalidDocumentError(f"must be positive, got {dpi}", field="printSpec.dpi")

    sides_raw = raw.get("sides")
    if sides_raw:
        if not isinstance(sides_raw, list):
            raise InvalidDocumentError("must be a list", field="printSpec.sides")
        sides = tuple(_side_from_dict(s, f"printSpec.sides[{i}]") for i, s in enumerate(sides_raw))
        return PrintSpecification(sides=sides, dpi=dpi)

    trim = TrimSize(
        w=_number(_get(raw, "trimW_mm", "trim_w_mm"), "printSpec.trimW_mm", required=True),
        h=_number(_get(raw, "trimH_mm", "trim_h_mm"), "printSpec.trimH_mm", required=True),
    )
    bleed = _number(raw.get("bleed_mm"), "printSpec.bleed_mm", default=0.0)
    safe = _number(raw.get("safe_mm"), "printSpec.safe_mm", default=0.0)
    corner = _number(_get(raw, "corner_radius_mm", "cornerRadius_mm"), "printSpec.corner_radius_mm", default=0.0)
    sides = tuple(
        PrintSide(id=pid, name=page_names.get(pid), trim_mm=trim, bleed_mm=bleed,
                  safe_mm=safe, corner_radius_mm=corner)
        for pid in page_ids
    )
    return PrintSpecification(sides=sides, dpi=dpi)


def element_from_dict(raw, path) -> Element:
    if not isinstance(raw, dict):
        raise InvalidDocumentError("must be an object", field=path)
    el_type = raw.get("type")
    el_id = str(_get(raw, "id", default=path))

    if el_type == "text":
        return TextElement(
            id=el_id,
            x_mm=_geometry(raw, el_id, "x_mm", "x_mm"),
            y_mm=_geometry(raw, el_id, "y_mm", "y_mm"),
            w_mm=_geometry(raw, el_id, "w_mm", "w_mm", required=False),
            h_mm=_geometry(raw, el_id, "h_mm", "h_mm", required=False),
            text=str(_get(raw, "text", default="")),
            font_size_pt=_number(_get(raw, "fontSize_pt", "font_size_pt"), f"{path}.fontSize_pt", default=12.0),
            font_family=_get(raw, "fontFamily", "font_family", default=DEFAULT_FONT_FAMILY),
            font_weight=int(_number(_get(raw, "fontWeight", "font_weight"), f"{path}.fontWeight", default=400)),
            fill=_get(raw, "fill", default=DEFAULT_FILL),
            align=_get(raw, "align", default="left"),
            line_height=_number(_get(raw, "lineHeight", "line_height"), f"{path}.lineHeight", default=1.2),
        )

    if el_type in ("label", "label-shape"):
        props = _get(raw, "textProps", "text_props", default={})
        if not isinstance(props, dict):
            raise InvalidDocumentError("must be an object", field=f"{path}.textProps")
        return LabelElement(
            id=el_id,
            x_mm=_geometry(raw, el_id, "x_mm", "x_mm"),
            y_mm=_geometry(raw, el_id, "y_mm", "y_mm"),
            w_mm=_geometry(raw, el_id, "w_mm", "w_mm"),
            h_mm=_geometry(raw, el_id, "h_mm", "h_mm"),
            text_props=TextProps(
                text=str(_get(props, "text", default="")),
                font_size_pt=_number(_get(props, "fontSize_pt", "font_size_pt"),
                                     f"{path}.textProps.fontSize_pt", default=12.0),
                font_family=_get(props, "fontFamily", "font_family", default=DEFAULT_FONT_FAMILY),
                font_weight=int(_number(_get(props, "fontWeight", "font_weight"),
                                        f"{path}.textProps.fontWeight", default=400)),
                fill=_get(props, "fill", default=DEFAULT_FILL),
                align=_get(props, "align", default="center"),
            ),
            shape_preset=_get(raw, "shapePreset", "shape_preset", default="rounded-rect"),
            padding_mm=_number(_get(raw, "padding_mm"), f"{path}.padding_mm", default=0.0),
            corner_radius_mm=_number(_get(raw, "cornerRadius_mm", "corner_radius_mm"),
                                     f"{path}.cornerRadius_mm", default=0.0),
            stroke=_stroke_from_dict(raw.get("stroke"), f"{path}.stroke"),
            fill=_get(raw, "fill", default=DEFAULT_LABEL_FILL),
        )

    if el_type == "image":
        crop = _get(raw, "cropRect", "crop_rect")
        crop_rect = None
        if crop:
            crop_rect = Rect(
                _number(crop.get("x"), f"{path}.cropRect.x", default=0.0),
                _number(crop.get("y"), f"{path}.cropRect.y", default=0.0),
                _number(_get(crop, "w", "width"), f"{path}.cropRect.w", default=1.0),
                _number(_get(crop, "h", "height"), f"{path}.cropRect.h", default=1.0),
            )
        return ImageElement(
            id=el_id,
            x_mm=_geometry(raw, el_id, "x_mm", "x_mm"),
            y_mm=_geometry(raw, el_id, "y_mm", "y_mm"),
            w_mm=_geometry(raw, el_id, "w_mm", "w_mm"),
            h_mm=_geometry(raw, el_id, "h_mm", "h_mm"),
            asset_ref=str(_get(raw, "assetRef", "asset_ref", "src", default="")),
            crop_rect=crop_rect,
            fit_mode=_get(raw, "fitMode", "fit_mode", default="fill"),
            opacity=_number(raw.get("opacity"), f"{path}.opacity", default=1.0),
        )

    if el_type == "shape":
        kind = _get(raw, "kind", default="rect")
        if kind not in SHAPE_KINDS:
            raise InvalidDocumentError(f"unknown shape kind {kind!r}", field=f"{path}.kind")
        return ShapeElement(
            id=el_id,
            x_mm=_geometry(raw, el_id, "x_mm", "x_mm"),
            y_mm=_geometry(raw, el_id, "y_mm", "y_mm"),
            w_mm=_geometry(raw, el_id, "w_mm", "w_mm"),
            h_mm=_geometry(raw, el_id, "h_mm", "h_mm"),
            kind=kind,
            fill=raw.get("fill"),
            stroke=_stroke_from_dict(raw.get("stroke"), f"{path}.stroke"),
        )

    raise InvalidDocumentError(f"unknown element type {el_type!r}", field=f"{path}.type")


def _ordered(elements_raw):
    # Array order is z-order; an explicit zIndex on every element overrides it
    if elements_raw and all(isinstance(e, dict) and e.get("zIndex") is not None for e in elements_raw):
        return sorted(elements_raw, key=lambda e: e["zIndex"])
    return list(elements_raw)


def document_from_dict(data) -> Document:
    """
    Build a Document from editor JSON.

    Raises:
        InvalidDocumentError: missing printSpec/pages or a malformed field
        InvalidGeometryError: a required element coordinate is missing or non-finite
    """
    if not isinstance(data, dict):
        raise InvalidDocumentError("document must be an object")
    spec_raw = _get(data, "printSpec", "print_spec")
    pages_raw = data.get("pages")
    if spec_raw is None or pages_raw is None:
        raise InvalidDocumentError("Invalid design JSON. Required: printSpec, pages")
    if not isinstance(pages_raw, list):
        raise InvalidDocumentError("must be a list", field="pages")

    pages = []
    for i, page_raw in enumerate(pages_raw):
        path = f"pages[{i}]"
        if not isinstance(page_raw, dict) or not page_raw.get("id"):
            raise InvalidDocumentError("must be an object with an id", field=path)
        elements_raw = page_raw.get("elements") or []
        if not isinstance(elements_raw, list):
            raise InvalidDocumentError("must be a list", field=f"{path}.elements")
        elements = tuple(
            element_from_dict(raw, f"{path}.elements[{j}]")
            for j, raw in enumerate(_ordered(elements_raw))
        )
        pages.append(Page(id=str(page_raw["id"]), name=page_raw.get("name"), elements=elements))

    page_ids = [p.id for p in pages]
    spec = print_spec_from_dict(spec_raw, page_ids=page_ids, page_names={p.id: p.name for p in pages})
    return Document(print_spec=spec, pages=tuple(pages))
