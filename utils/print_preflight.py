"""
Print Preflight Validation.

Checks content positioned on the editor canvas against the physical limits
of each print side before anything is exported.

Coordinate space: 96-DPI screen pixels (ScreenPx). The editor canvas for a
side spans the full bleed rectangle, so the trim starts at (bleed, bleed)
and the safe area is the trim inset by safe_mm on every edge.

Rules:
- text / label-shape: the bounding box must sit fully inside the safe area.
  Violations are errors and block export.
- everything else (images, shapes, backgrounds): only compared with the
  trim+bleed boundary. An element that reaches a trim edge but stops short of
  the bleed edge gets a warning, never an error.
- small fonts, low-resolution images and text in a rounded-corner cut are
  warnings.
"""
import math
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from constants import (
    DEFAULT_SCREEN_FONT_PX,
    GEOMETRY_EPSILON_PX,
    MIN_FONT_SIZE_PT,
    MIN_IMAGE_SCREEN_PX,
    PREFLIGHT_TEXT_TYPES,
    TEXT_CHAR_WIDTH_FACTOR,
)
from utils.units import Rect, ScreenPx, mm_to_css_px, px_to_pt


@dataclass
class PreflightVerdict:
    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def to_dict(self):
        return {"isValid": self.is_valid, "errors": list(self.errors), "warnings": list(self.warnings)}


class PreflightError(Exception):
    """Raised by export gates when preflight fails."""
    def __init__(self, result: PreflightVerdict):
        self.result = result
        super().__init__(f"Preflight failed: {'; '.join(result.errors)}")


@dataclass(frozen=True)
class PreflightElement:
    """One editor object, flattened to screen pixels."""
    type: str
    x: ScreenPx
    y: ScreenPx
    width: Optional[ScreenPx] = None
    height: Optional[ScreenPx] = None
    font_size: Optional[ScreenPx] = None
    scale_x: float = 1.0
    scale_y: float = 1.0
    text: Optional[str] = None
    kind: Optional[str] = None
    id: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.type in PREFLIGHT_TEXT_TYPES

    def bounding_box(self) -> Rect:
        """
        Effective bbox {x, y, x + width*scale_x, y + height*scale_y}.

        Text without an explicit width is measured with the editor's glyph
        estimate (len * font_size * 0.6); without a height it is one line.
        """
        font = self.font_size or DEFAULT_SCREEN_FONT_PX
        width = self.width
        if width is None:
            width = len(self.text or "") * font * TEXT_CHAR_WIDTH_FACTOR if self.is_text else 0.0
        height = self.height
        if height is None:
            height = font if self.is_text else 0.0
        return Rect(self.x, self.y, width * self.scale_x, height * self.scale_y)


def _num(raw, key, *aliases, required=False, default=None):
    for k in (key,) + aliases:
        if raw.get(k) is not None:
            value = raw[k]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ValueError(f"preflight element field '{key}' must be a finite number, got {value!r}")
            return float(value)
    if required:
        raise ValueError(f"preflight element field '{key}' is required")
    return default


def preflight_element_from_dict(raw) -> PreflightElement:
    """Parse the editor's object record (camelCase or snake_case)."""
    if not isinstance(raw, dict):
        raise ValueError("preflight element must be an object")
    return PreflightElement(
        type=str(raw.get("type") or ""),
        x=ScreenPx(_num(raw, "x", required=True)),
        y=ScreenPx(_num(raw, "y", required=True)),
        width=_num(raw, "width"),
        height=_num(raw, "height"),
        font_size=_num(raw, "fontSize", "font_size"),
        scale_x=_num(raw, "scaleX", "scale_x", default=1.0),
        scale_y=_num(raw, "scaleY", "scale_y", default=1.0),
        text=raw.get("text"),
        kind=raw.get("kind"),
        id=raw.get("id"),
    )


@dataclass(frozen=True)
class SideFrame:
    """A side's three rectangles in screen pixels."""
    bleed: Rect
    trim: Rect
    safe: Rect
    corner_radius: float


def side_frame(side) -> SideFrame:
    bleed_px = mm_to_css_px(side.bleed_mm)
    trim_w = mm_to_css_px(side.trim_mm.w)
    trim_h = mm_to_css_px(side.trim_mm.h)
    trim = Rect(bleed_px, bleed_px, trim_w, trim_h)
    return SideFrame(
        bleed=Rect(0.0, 0.0, trim_w + 2 * bleed_px, trim_h + 2 * bleed_px),
        trim=trim,
        safe=trim.inset(mm_to_css_px(side.safe_mm)),
        corner_radius=mm_to_css_px(side.corner_radius_mm),
    )


def _describe(el: PreflightElement) -> str:
    if el.text:
        snippet = el.text if len(el.text) <= 30 else el.text[:30] + "..."
        return f'"{snippet}"'
    return f"'{el.id}'" if el.id else el.type or "element"


def in_rounded_corner_danger_zone(box: Rect, safe: Rect, radius: float) -> bool:
    """True if `box` reaches into the area a rounded-corner cut removes."""
    if radius <= 0:
        return False
    r = radius
    corners = [
        (Rect(safe.x, safe.y, r, r), safe.x + r, safe.y + r),
        (Rect(safe.right - r, safe.y, r, r), safe.right - r, safe.y + r),
        (Rect(safe.x, safe.bottom - r, r, r), safe.x + r, safe.bottom - r),
        (Rect(safe.right - r, safe.bottom - r, r, r), safe.right - r, safe.bottom - r),
    ]
    for square, cx, cy in corners:
        if not box.intersects(square):
            continue
        # The part of the box inside this corner square; its farthest point
        # from the arc center decides whether it pokes past the curve.
        ix0, iy0 = max(box.x, square.x), max(box.y, square.y)
        ix1, iy1 = min(box.right, square.right), min(box.bottom, square.bottom)
        far_x = ix0 if abs(ix0 - cx) > abs(ix1 - cx) else ix1
        far_y = iy0 if abs(iy0 - cy) > abs(iy1 - cy) else iy1
        if (far_x - cx) ** 2 + (far_y - cy) ** 2 > r * r:
            return True
    return False


def _short_edges(box: Rect, frame: SideFrame, eps: float) -> List[str]:
    """Edges where the element stops short of the bleed line."""
    edges = []
    if box.x > frame.bleed.x + eps:
        edges.append("left")
    if box.y > frame.bleed.y + eps:
        edges.append("top")
    if box.right < frame.bleed.right - eps:
        edges.append("right")
    if box.bottom < frame.bleed.bottom - eps:
        edges.append("bottom")
    return edges


def check_side(side, elements: Sequence[PreflightElement]):
    """Returns (errors, warnings) for one side."""
    errors, warnings = [], []
    frame = side_frame(side)
    eps = GEOMETRY_EPSILON_PX

    for el in elements:
        box = el.bounding_box()

        if el.is_text:
            if not el.text:
                continue
            if not frame.safe.contains(box, eps=eps):
                errors.append(f"{side.label} text is outside the safe area: {_describe(el)}")
            elif in_rounded_corner_danger_zone(box, frame.safe, frame.corner_radius):
                warnings.append(f"{side.label} text {_describe(el)} is too close to the rounded corner cut")

            font_px = el.font_size or DEFAULT_SCREEN_FONT_PX
            font_pt = px_to_pt(ScreenPx(font_px))
            if font_pt < MIN_FONT_SIZE_PT:
                warnings.append(
                    f"{side.label} font size {font_px:g}px (~{font_pt:.1f}pt) may be too small for print readability"
                )
            continue

        if not box.intersects(frame.bleed):
            warnings.append(f"{side.label} {el.type or 'element'} {_describe(el)} is outside the printable area")
            continue

        if not box.contains(frame.bleed, eps=eps):
            short = _short_edges(box, frame, eps)
            warnings.append(
                f"{side.label} {el.type or 'element'} {_describe(el)} does not extend to the bleed edge "
                f"({', '.join(short)})"
            )

        if el.type == "image" and (box.width < MIN_IMAGE_SCREEN_PX or box.height < MIN_IMAGE_SCREEN_PX):
            warnings.append(f"{side.label} image {_describe(el)} may have low resolution for print quality")

    return errors, warnings


def validate_print_spec(print_spec, side_elements: Mapping[str, Sequence[PreflightElement]]) -> PreflightVerdict:
    """
    Validate per-side editor content against a PrintSpecification.

    Args:
        print_spec: PrintSpecification with the sides to check
        side_elements: side id -> elements in screen pixels

    Returns:
        PreflightVerdict: is_valid is True iff there are no errors
    """
    errors: List[str] = []
    warnings: List[str] = []

    for side in print_spec.sides:
        elements = side_elements.get(side.id) or []
        side_errors, side_warnings = check_side(side, elements)
        errors.extend(side_errors)
        warnings.extend(side_warnings)

    known = set(print_spec.side_ids)
    for side_id in side_elements:
        if side_id not in known:
            warnings.append(f"No print side named '{side_id}'; its elements were not checked")

    return PreflightVerdict(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )
