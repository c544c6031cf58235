"""
Rasterization & compositing engine.

render() paints one page of a Document onto a white canvas sized from the
page's print side:

    width  = round(mm_to_px(trim_w + 2*bleed, dpi))   (bleed included)
    height = round(mm_to_px(trim_h + 2*bleed, dpi))

mm (0, 0) is always the trim's top-left corner; with bleed included every
element shifts by +bleed_mm before conversion. Elements paint in list order.

Geometry problems (missing/non-finite coordinates) fail the whole call.
Anything else that stops one element from painting (unresolvable asset,
undecodable image) skips that element and adds a warning.
"""
import io
import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError

from constants import CANVAS_BACKGROUND
from services.printing.assets import AssetResolver, load_asset
from services.printing.document import (
    Document,
    Element,
    ImageElement,
    LabelElement,
    PrintSide,
    ShapeElement,
    TextElement,
    element_rect_mm,
)
from services.printing.errors import (
    AssetError,
    InvalidDocumentError,
    InvalidGeometryError,
    UnknownPageError,
)
from services.printing.fonts import get_font
from utils.units import Rect, mm_to_px, pt_to_print_px, round_px

logger = logging.getLogger(__name__)

# Errors that skip a single element instead of failing the render
_ELEMENT_ERRORS = (AssetError, UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError)


@dataclass
class RasterBuffer:
    """Rendered pixels plus whatever was skipped on the way."""
    image: Image.Image
    dpi: int
    warnings: list[str] = field(default_factory=list)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def to_png(self) -> bytes:
        out = io.BytesIO()
        self.image.save(out, format="PNG", dpi=(self.dpi, self.dpi))
        return out.getvalue()


def canvas_size_px(side: PrintSide, dpi: float, include_bleed: bool) -> tuple[int, int]:
    w_mm, h_mm = side.canvas_mm(include_bleed)
    return round_px(mm_to_px(w_mm, dpi)), round_px(mm_to_px(h_mm, dpi))


def element_rect_px(element: Element, dpi: float, offset_mm: float) -> Rect:
    """Element rectangle in device pixels on the canvas."""
    r = element_rect_mm(element)
    return Rect(
        mm_to_px(r.x + offset_mm, dpi),
        mm_to_px(r.y + offset_mm, dpi),
        mm_to_px(r.width, dpi),
        mm_to_px(r.height, dpi),
    )


def _color(value, default="#000000"):
    return value or default


# -----------------------------------------------------------------------------
# Compositing helpers
# -----------------------------------------------------------------------------
def paste_clipped(canvas: Image.Image, tile: Image.Image, left: int, top: int) -> None:
    """alpha_composite `tile` at (left, top), clipping whatever falls off the canvas."""
    src_x = max(0, -left)
    src_y = max(0, -top)
    dst_x = max(0, left)
    dst_y = max(0, top)
    w = min(tile.width - src_x, canvas.width - dst_x)
    h = min(tile.height - src_y, canvas.height - dst_y)
    if w <= 0 or h <= 0:
        return
    visible = tile.crop((src_x, src_y, src_x + w, src_y + h))
    canvas.alpha_composite(visible, dest=(dst_x, dst_y))


def _tile_for(box) -> Optional[Image.Image]:
    left, top, right, bottom = box
    w, h = right - left, bottom - top
    if w <= 0 or h <= 0:
        return None
    return Image.new("RGBA", (w, h), (0, 0, 0, 0))


def _with_opacity(img: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1:
        return img
    opacity = max(0.0, opacity)
    alpha = img.getchannel("A").point(lambda a: int(round(a * opacity)))
    img.putalpha(alpha)
    return img


# -----------------------------------------------------------------------------
# Element painters
# -----------------------------------------------------------------------------
def _paint_image(canvas, element: ImageElement, rect: Rect, assets):
    box = rect.to_box()
    w, h = box[2] - box[0], box[3] - box[1]
    if w <= 0 or h <= 0:
        return

    data = load_asset(element.asset_ref, assets)
    with Image.open(io.BytesIO(data)) as src:
        img = src.convert("RGBA")

    if element.crop_rect is not None:
        c = element.crop_rect
        crop_box = (
            round_px(c.x * img.width),
            round_px(c.y * img.height),
            round_px(c.right * img.width),
            round_px(c.bottom * img.height),
        )
        if crop_box[2] <= crop_box[0] or crop_box[3] <= crop_box[1]:
            raise ValueError(f"empty crop rect {c}")
        img = img.crop(crop_box)

    if element.fit_mode == "fit":
        fitted = ImageOps.contain(img, (w, h), method=Image.Resampling.LANCZOS)
        tile = Image.new("RGBA", (w, h), (255, 255, 255, 255))
        tile.alpha_composite(fitted, dest=((w - fitted.width) // 2, (h - fitted.height) // 2))
    else:
        tile = img.resize((w, h), resample=Image.Resampling.LANCZOS)

    paste_clipped(canvas, _with_opacity(tile, element.opacity), box[0], box[1])


def _draw_lines(draw, lines, font, fill, x, y, width, align, line_px):
    anchor = {"center": "ma", "right": "ra"}.get(align, "la")
    if anchor == "ma":
        x = x + width / 2
    elif anchor == "ra":
        x = x + width
    for i, line in enumerate(lines):
        draw.text((x, y + i * line_px), line, font=font, fill=fill, anchor=anchor)


def _paint_text(canvas, element: TextElement, rect: Rect, dpi):
    if not element.text:
        return
    size_px = pt_to_print_px(element.font_size_pt, dpi)
    font = get_font(element.font_family, element.font_weight, size_px)
    lines = element.text.split("\n")
    line_px = size_px * element.line_height

    if element.w_mm is not None and element.h_mm is not None:
        # Bounded text box: draw into a tile so overflow is clipped to the box
        box = rect.to_box()
        tile = _tile_for(box)
        if tile is None:
            return
        _draw_lines(ImageDraw.Draw(tile), lines, font, _color(element.fill),
                    0, 0, tile.width, element.align, line_px)
        paste_clipped(canvas, tile, box[0], box[1])
        return

    width = rect.width if element.w_mm is not None else 0
    _draw_lines(ImageDraw.Draw(canvas), lines, font, _color(element.fill),
                round_px(rect.x), round_px(rect.y), width, element.align, line_px)


def _paint_label(canvas, element: LabelElement, rect: Rect, dpi):
    box = rect.to_box()
    tile = _tile_for(box)
    if tile is None:
        return
    draw = ImageDraw.Draw(tile)
    w, h = tile.size

    stroke_px = 0
    outline = None
    if element.stroke is not None and element.stroke.width_mm > 0:
        stroke_px = max(1, round_px(mm_to_px(element.stroke.width_mm, dpi)))
        outline = element.stroke.color

    shape_box = [0, 0, w - 1, h - 1]
    if element.shape_preset in ("badge-circle", "circle", "ellipse"):
        draw.ellipse(shape_box, fill=element.fill, outline=outline, width=stroke_px)
    else:
        if element.shape_preset == "pill":
            radius = min(w, h) / 2
        elif element.shape_preset == "rect":
            radius = 0
        else:
            radius = mm_to_px(element.corner_radius_mm, dpi)
        draw.rounded_rectangle(shape_box, radius=max(0, int(radius)), fill=element.fill,
                               outline=outline, width=stroke_px)

    props = element.text_props
    if props.text:
        size_px = pt_to_print_px(props.font_size_pt, dpi)
        font = get_font(props.font_family, props.font_weight, size_px)
        pad = mm_to_px(element.padding_mm, dpi)
        lines = props.text.split("\n")
        line_px = size_px * 1.2
        text_h = size_px + line_px * (len(lines) - 1)
        top = max(pad, (h - text_h) / 2)
        _draw_lines(draw, lines, font, _color(props.fill), pad, top,
                    max(0, w - 2 * pad), props.align, line_px)

    paste_clipped(canvas, tile, box[0], box[1])


def _paint_shape(canvas, element: ShapeElement, rect: Rect, dpi):
    box = rect.to_box()
    tile = _tile_for(box)
    if tile is None:
        return
    draw = ImageDraw.Draw(tile)
    w, h = tile.size

    stroke_px = 0
    outline = None
    if element.stroke is not None and element.stroke.width_mm > 0:
        stroke_px = max(1, round_px(mm_to_px(element.stroke.width_mm, dpi)))
        outline = element.stroke.color

    if element.kind == "border":
        # Border with no explicit stroke: 1mm black, drawn inward from the edge
        if outline is None:
            stroke_px = max(1, round_px(mm_to_px(1.0, dpi)))
            outline = "#000000"
        draw.rectangle([0, 0, w - 1, h - 1], fill=element.fill, outline=outline, width=stroke_px)
    elif element.kind == "rect":
        draw.rectangle([0, 0, w - 1, h - 1], fill=_color(element.fill) if outline is None else element.fill,
                       outline=outline, width=stroke_px)
    elif element.kind == "ellipse":
        draw.ellipse([0, 0, w - 1, h - 1], fill=_color(element.fill) if outline is None else element.fill,
                     outline=outline, width=stroke_px)
    elif element.kind == "line":
        draw.line([(0, 0), (w - 1, h - 1)], fill=outline or _color(element.fill), width=max(1, stroke_px))
    else:
        raise ValueError(f"unknown shape kind {element.kind!r}")

    paste_clipped(canvas, tile, box[0], box[1])


def _paint(canvas, element: Element, rect: Rect, dpi, assets):
    if isinstance(element, ImageElement):
        _paint_image(canvas, element, rect, assets)
    elif isinstance(element, TextElement):
        _paint_text(canvas, element, rect, dpi)
    elif isinstance(element, LabelElement):
        _paint_label(canvas, element, rect, dpi)
    elif isinstance(element, ShapeElement):
        _paint_shape(canvas, element, rect, dpi)
    else:
        raise TypeError(f"Unhandled element type: {type(element).__name__}")


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------
def render(
    document: Document,
    page_id: str,
    dpi: Optional[int] = None,
    include_bleed: bool = True,
    assets: Optional[AssetResolver] = None,
    max_pixels: Optional[int] = None,
) -> RasterBuffer:
    """
    Render one page to a RasterBuffer.

    Args:
        document: The document to render
        page_id: Page (= print side) id
        dpi: Output resolution; defaults to the document's print spec dpi
        include_bleed: Size the canvas trim + 2*bleed instead of trim only
        assets: Resolver for Image element asset refs
        max_pixels: Refuse canvases larger than this (w*h)

    Raises:
        UnknownPageError: page_id is not in the document
        InvalidDocumentError: the page has no matching print side, or a bad dpi
        InvalidGeometryError: an element has missing/non-finite geometry
    """
    page = document.page(page_id)
    if page is None:
        raise UnknownPageError(page_id, document.page_ids)
    side = document.print_spec.side(page_id)
    if side is None:
        raise InvalidDocumentError(f"no print side defined for page '{page_id}'", field="printSpec.sides")

    dpi = document.print_spec.dpi if dpi is None else dpi
    if isinstance(dpi, bool) or not isinstance(dpi, (int, float)) or not math.isfinite(dpi) or dpi <= 0:
        raise InvalidDocumentError(f"must be a positive number, got {dpi!r}", field="options.dpi")

    width, height = canvas_size_px(side, dpi, include_bleed)
    if width <= 0 or height <= 0:
        raise InvalidGeometryError(page_id, "trim_mm", (side.trim_mm.w, side.trim_mm.h))
    if max_pixels is not None and width * height > max_pixels:
        raise InvalidDocumentError(
            f"canvas {width}x{height}px exceeds the {max_pixels}px limit", field="options.dpi"
        )

    offset_mm = side.bleed_mm if include_bleed else 0.0
    # Validate every element before painting anything
    rects = [element_rect_px(el, dpi, offset_mm) for el in page.elements]

    canvas = Image.new("RGBA", (width, height), CANVAS_BACKGROUND)
    warnings = []
    for element, rect in zip(page.elements, rects):
        try:
            _paint(canvas, element, rect, dpi, assets)
        except _ELEMENT_ERRORS as e:
            msg = f"Element '{element.id}' on {side.label} was skipped: {e}"
            logger.warning(f"[Render] {msg}")
            warnings.append(msg)

    logger.info(
        f"[Render] page={page_id} canvas={width}x{height}px dpi={dpi} bleed={include_bleed} "
        f"elements={len(page.elements)} skipped={len(warnings)}"
    )
    return RasterBuffer(image=canvas, dpi=int(dpi), warnings=warnings)


def render_all_pages(document: Document, dpi=None, include_bleed=True, assets=None, max_pixels=None):
    """Render every page in document order."""
    return [
        (page.id, render(document, page.id, dpi=dpi, include_bleed=include_bleed,
                         assets=assets, max_pixels=max_pixels))
        for page in document.pages
    ]
