"""
QR / code compositing.

composite_code() pastes a code image on top of a rendered design at a pixel
rectangle and returns a new buffer; the input raster is never modified.
compose_template_code() is the full flow for code-bearing products: draw the
template's frame, generate a code for the payload, put it at the template's
code target.
"""
import io
import logging
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from constants import DEFAULT_DPI, GEOMETRY_EPSILON_PX
from services.printing.errors import CompositeError
from services.printing.render import RasterBuffer
from services.printing.templates import TemplateDefinition, default_placement, render_overlay, resolve_code_target
from utils.units import Rect, round_px

logger = logging.getLogger(__name__)

ImageInput = Union[RasterBuffer, Image.Image, bytes]


def _open_image(value: Optional[ImageInput], what: str) -> Image.Image:
    if value is None or (isinstance(value, (bytes, bytearray)) and not value):
        raise CompositeError(f"No {what} image provided")
    if isinstance(value, RasterBuffer):
        return value.image.convert("RGBA")
    if isinstance(value, Image.Image):
        return value.convert("RGBA")
    try:
        with Image.open(io.BytesIO(value)) as img:
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise CompositeError(f"Could not decode {what} image: {e}")


def _dpi_of(value) -> int:
    if isinstance(value, RasterBuffer):
        return value.dpi
    return DEFAULT_DPI


def composite_code(design: ImageInput, code_image: ImageInput, target_rect: Rect) -> RasterBuffer:
    """
    Paste `code_image` scaled to `target_rect` over `design`.

    The code is resized to exactly the target (codes are square; a non-square
    target is the caller's choice) and composited topmost.

    Raises:
        CompositeError: no code image, or the target is empty or not fully
            inside the design
    """
    base = _open_image(design, "design")
    code = _open_image(code_image, "code")

    if not target_rect.is_finite():
        raise CompositeError(f"Target rect must be finite, got {target_rect}")
    if target_rect.width <= 0 or target_rect.height <= 0:
        raise CompositeError(f"Target rect must have a positive size, got {target_rect}")
    # Bounds are checked on the unrounded rect; half a pixel over is still outside
    eps = GEOMETRY_EPSILON_PX
    if (target_rect.x < -eps or target_rect.y < -eps
            or target_rect.right > base.width + eps or target_rect.bottom > base.height + eps):
        raise CompositeError(f"Target rect {target_rect} is outside the {base.width}x{base.height} design")
    left, top, right, bottom = target_rect.to_box()
    if right - left <= 0 or bottom - top <= 0:
        raise CompositeError(f"Target rect must have a positive size, got {target_rect}")

    out = base.copy()
    scaled = code.resize((right - left, bottom - top), resample=Image.Resampling.LANCZOS)
    out.alpha_composite(scaled, dest=(left, top))
    logger.info(f"[Composite] code {right - left}x{bottom - top}px at ({left}, {top})")
    return RasterBuffer(image=out, dpi=_dpi_of(design))


def compose_template_code(
    design: ImageInput,
    template: TemplateDefinition,
    payload: str,
    code_generator,
    placement: Optional[Rect] = None,
) -> RasterBuffer:
    """
    Frame + code onto a design.

    Args:
        design: Rendered design
        template: Overlay template
        payload: What the code encodes (e.g. the keepsake URL)
        code_generator: CodeGenerator, called as code_generator(payload, size)
        placement: Template bounding box in design pixels; defaults to the
            template's own default scale/position

    Raises:
        CompositeError: code generation failed, missing code image or a
            target outside the design
    """
    base = _open_image(design, "design")
    if placement is None:
        placement = default_placement(template, base.width, base.height)

    framed = base.copy()
    render_overlay(template, placement, framed)

    target = resolve_code_target(template, placement)
    size = max(1, round_px(min(target.width, target.height)))
    try:
        code_png = code_generator(payload, size)
    except Exception as e:
        raise CompositeError(f"Code generation failed for a {size}px code: {e}") from e
    result = composite_code(framed, code_png, target)
    result.dpi = _dpi_of(design)
    return result
