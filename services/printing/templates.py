"""
Template / overlay catalog.

Each template is a decorative frame drawn in its own intrinsic coordinate
space (view box) plus a code-target rectangle given as fractions of the
template's bounding box. The catalog is built once at import and exposed
read-only.

Two anchorings exist for the code target:

- corner: (x, y) is the target's top-left corner as a fraction of the box.
    rect.x = box.x + box.width * x      rect.w = box.width * w
- center: (x, y) is the target's center; w / h size it.
    rect.x = box.x + box.width * x - (box.width * w) / 2
"""
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Optional

from PIL import Image, ImageColor, ImageDraw

from services.printing.errors import TemplateError
from services.printing.fonts import get_font
from services.printing.render import paste_clipped
from utils.units import Rect, round_px

logger = logging.getLogger(__name__)

ANCHORS = ("corner", "center")


@dataclass(frozen=True)
class CodeTarget:
    x: float
    y: float
    w: float
    h: float
    anchor: str = "corner"

    def __post_init__(self):
        if self.anchor not in ANCHORS:
            raise TemplateError(f"Unknown code target anchor {self.anchor!r}")
        if self.w <= 0 or self.h <= 0:
            raise TemplateError(f"Code target size must be positive, got {self.w}x{self.h}")
        if self.anchor == "center":
            x0, y0 = self.x - self.w / 2, self.y - self.h / 2
        else:
            x0, y0 = self.x, self.y
        if x0 < 0 or y0 < 0 or x0 + self.w > 1 or y0 + self.h > 1:
            raise TemplateError(f"Code target {self} falls outside the template box")

    def to_dict(self):
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h, "anchor": self.anchor}


@dataclass(frozen=True)
class OverlayPrimitive:
    """A rect or text drawn in the template's view-box units."""
    kind: str
    x: float
    y: float
    w: float = 0.0
    h: float = 0.0
    text: str = ""
    font_size: float = 14.0
    font_weight: int = 400
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 0.0
    dash: Optional[tuple] = None
    radius: float = 0.0
    opacity: float = 1.0


@dataclass(frozen=True)
class TemplateDefinition:
    id: str
    name: str
    width: float
    height: float
    code_target: CodeTarget
    primitives: tuple = field(default_factory=tuple)
    default_scale: float = 1.0
    default_position: tuple = (0.5, 0.5)
    description: str = ""

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "width": self.width,
            "height": self.height,
            "defaultScale": self.default_scale,
            "defaultPositionPct": {"x": self.default_position[0], "y": self.default_position[1]},
            "codeTargetPct": self.code_target.to_dict(),
        }


# -----------------------------------------------------------------------------
# Catalog
# -----------------------------------------------------------------------------
_TARGET_BLUE = "#0066cc"


def _target_marker(x, y, w, h):
    """Dashed box + "QR CODE" caption marking where the code will sit."""
    return (
        OverlayPrimitive("rect", x, y, w, h, stroke=_TARGET_BLUE, stroke_width=4,
                         dash=(8, 4), radius=5, opacity=0.8),
        OverlayPrimitive("text", x + w / 2, y + h / 2, text="QR CODE", font_size=14,
                         font_weight=700, fill=_TARGET_BLUE, opacity=0.8),
    )


def _qr_target_template(template_id, name, description, x, y):
    w, h = 0.36, 0.257
    return TemplateDefinition(
        id=template_id,
        name=name,
        description=description,
        width=500,
        height=700,
        code_target=CodeTarget(x, y, w, h),
        primitives=(
            OverlayPrimitive("rect", 0, 0, 500, 700, stroke="#333333", stroke_width=2, radius=12),
        ) + _target_marker(x * 500, y * 700, w * 500, h * 700),
    )


def _build_catalog():
    templates = [
        _qr_target_template("qr_target_bottom_right", "QR Bottom Right",
                            "Code in the bottom right corner", 0.6, 0.714),
        _qr_target_template("qr_target_bottom_left", "QR Bottom Left",
                            "Code in the bottom left corner", 0.04, 0.714),
        _qr_target_template("qr_target_bottom_center", "QR Bottom Center",
                            "Code centered along the bottom edge", 0.32, 0.714),
        _qr_target_template("qr_target_top_right", "QR Top Right",
                            "Code in the top right corner", 0.6, 0.029),
        _qr_target_template("qr_target_center", "QR Center",
                            "Code in the middle of the design", 0.32, 0.371),
        TemplateDefinition(
            id="scan_frame",
            name="Scan Frame",
            description="Square frame with the code centered in its upper right",
            width=300,
            height=300,
            code_target=CodeTarget(0.7033, 0.2933, 0.24, 0.24, anchor="center"),
            default_scale=0.3,
            default_position=(0.8, 0.75),
            primitives=(
                OverlayPrimitive("rect", 0, 0, 300, 300, fill="#ffffff", stroke="#222222",
                                 stroke_width=3, radius=24, opacity=0.92),
                OverlayPrimitive("text", 105, 88, text="SCAN ME", font_size=26, font_weight=700,
                                 fill="#222222"),
                OverlayPrimitive("text", 150, 230, text="to see the video & guestbook", font_size=16,
                                 fill="#444444"),
            ),
        ),
        TemplateDefinition(
            id="scan_banner",
            name="Scan Banner",
            description="Wide banner with the code on the right",
            width=1170,
            height=550,
            code_target=CodeTarget(905 / 1170, 105 / 550, 230 / 1170, 230 / 550),
            default_position=(0.5, 0.85),
            default_scale=0.6,
            primitives=(
                OverlayPrimitive("rect", 0, 0, 1170, 550, fill="#ffffff", stroke="#1f2937",
                                 stroke_width=6, radius=40),
                OverlayPrimitive("text", 440, 230, text="Scan to open", font_size=72, font_weight=700,
                                 fill="#1f2937"),
                OverlayPrimitive("text", 440, 330, text="your keepsake online", font_size=44,
                                 fill="#4b5563"),
                OverlayPrimitive("rect", 890, 90, 260, 260, stroke="#1f2937", stroke_width=4, radius=16),
            ),
        ),
    ]
    return MappingProxyType({t.id: t for t in templates})


TEMPLATES = _build_catalog()


def list_templates():
    return list(TEMPLATES.values())


def get_template(template_id: str) -> TemplateDefinition:
    try:
        return TEMPLATES[template_id]
    except KeyError:
        raise TemplateError(f"Unknown template: {template_id}")


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------
def resolve_code_target(template: TemplateDefinition, placement: Rect) -> Rect:
    """Where the code goes, in the same units as `placement`."""
    t = template.code_target
    w = placement.width * t.w
    h = placement.height * t.h
    if t.anchor == "center":
        return Rect(
            placement.x + placement.width * t.x - w / 2,
            placement.y + placement.height * t.y - h / 2,
            w,
            h,
        )
    return Rect(placement.x + placement.width * t.x, placement.y + placement.height * t.y, w, h)


def default_placement(template: TemplateDefinition, canvas_w: float, canvas_h: float) -> Rect:
    """
    Placement from the template's default scale and position.

    default_scale 1.0 makes the template as wide as the canvas (height
    follows the intrinsic aspect); default_position is the placement's
    center as a fraction of the canvas. The result is shrunk and shifted
    as needed so it stays on the canvas.
    """
    w = canvas_w * template.default_scale
    h = w * template.height / template.width
    if h > canvas_h:
        w, h = w * canvas_h / h, canvas_h
    px, py = template.default_position
    x = min(max(0.0, canvas_w * px - w / 2), canvas_w - w)
    y = min(max(0.0, canvas_h * py - h / 2), canvas_h - h)
    return Rect(x, y, w, h)


# -----------------------------------------------------------------------------
# Overlay rasterization
# -----------------------------------------------------------------------------
def _rgba(color, opacity):
    if color is None:
        return None
    r, g, b, *a = ImageColor.getrgb(color)
    alpha = a[0] if a else 255
    return (r, g, b, int(round(alpha * opacity)))


def _dashed_rect(draw, box, color, width, dash):
    on, off = dash
    left, top, right, bottom = box
    step = on + off
    for y in (top, bottom - width + 1):
        x = left
        while x < right:
            draw.rectangle([x, y, min(x + on, right), y + width - 1], fill=color)
            x += step
    for x in (left, right - width + 1):
        y = top
        while y < bottom:
            draw.rectangle([x, y, x + width - 1, min(y + on, bottom)], fill=color)
            y += step


def _draw_primitive(draw, p: OverlayPrimitive, sx, sy):
    scale = min(sx, sy)
    if p.kind == "rect":
        box = [round_px(p.x * sx), round_px(p.y * sy),
               round_px((p.x + p.w) * sx) - 1, round_px((p.y + p.h) * sy) - 1]
        if box[2] <= box[0] or box[3] <= box[1]:
            return
        stroke_px = max(1, round_px(p.stroke_width * scale)) if p.stroke else 0
        fill = _rgba(p.fill, p.opacity)
        outline = _rgba(p.stroke, p.opacity)
        if p.dash and outline is not None:
            if fill is not None:
                draw.rectangle(box, fill=fill)
            dash = (max(1, round_px(p.dash[0] * scale)), max(1, round_px(p.dash[1] * scale)))
            _dashed_rect(draw, box, outline, stroke_px, dash)
        else:
            draw.rounded_rectangle(box, radius=max(0, round_px(p.radius * scale)),
                                   fill=fill, outline=outline, width=stroke_px)
    elif p.kind == "text":
        font = get_font(None, p.font_weight, p.font_size * scale)
        draw.text((p.x * sx, p.y * sy), p.text, font=font,
                  fill=_rgba(p.fill or "#000000", p.opacity), anchor="mm")
    else:
        raise TemplateError(f"Unknown overlay primitive {p.kind!r}")


def render_overlay(template: TemplateDefinition, placement: Rect, canvas: Image.Image) -> None:
    """Draw the template's frame onto `canvas` (RGBA) at `placement` (canvas pixels)."""
    box = placement.to_box()
    w, h = box[2] - box[0], box[3] - box[1]
    if w <= 0 or h <= 0:
        raise TemplateError(f"Template placement must have a positive size, got {w}x{h}")
    tile = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    draw = ImageDraw.Draw(tile)
    sx, sy = w / template.width, h / template.height
    for primitive in template.primitives:
        _draw_primitive(draw, primitive, sx, sy)
    paste_clipped(canvas, tile, box[0], box[1])
    logger.info(f"[Templates] overlay={template.id} at {box}")
