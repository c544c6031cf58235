"""
Unit & geometry helpers.

Two pixel spaces exist in this codebase and they must never be mixed:

- ScreenPx: the editor canvas, 96 px per inch (CSS convention). Preflight
  input arrives in this space and typographic sizes map into it via
  pt_to_px (1pt = 1/0.75 px).
- PrintPx: device pixels at the requested print DPI. The renderer works
  here; font sizes map into it via pt_to_print_px.

Both are NewTypes over float so a type checker flags a ScreenPx passed where
a PrintPx is expected. Millimeters and points stay plain floats.
"""
import math
from dataclasses import dataclass
from typing import NewType

from constants import MM_PER_INCH, POINTS_PER_INCH, SCREEN_DPI

ScreenPx = NewType("ScreenPx", float)
PrintPx = NewType("PrintPx", float)


# -----------------------------------------------------------------------------
# Print DPI
# -----------------------------------------------------------------------------
def mm_to_px(mm: float, dpi: float) -> PrintPx:
    return PrintPx(mm / MM_PER_INCH * dpi)


def px_to_mm(px: PrintPx, dpi: float) -> float:
    return px * MM_PER_INCH / dpi


def pt_to_mm(pt: float) -> float:
    """Typographic points to millimeters (1pt = 1/72in)."""
    return pt * MM_PER_INCH / POINTS_PER_INCH


def pt_to_print_px(pt: float, dpi: float) -> PrintPx:
    """Font size in points to device pixels at `dpi` (pt * dpi / 72)."""
    return PrintPx(pt * dpi / POINTS_PER_INCH)


def mm_to_pt(mm: float) -> float:
    """Millimeters to PDF points."""
    return mm / MM_PER_INCH * POINTS_PER_INCH


# -----------------------------------------------------------------------------
# Screen (96 DPI) space
# -----------------------------------------------------------------------------
def mm_to_css_px(mm: float) -> ScreenPx:
    return ScreenPx(mm * (SCREEN_DPI / MM_PER_INCH))


def css_px_to_mm(px: ScreenPx) -> float:
    return px / (SCREEN_DPI / MM_PER_INCH)


def pt_to_px(pt: float) -> ScreenPx:
    return ScreenPx(pt / 0.75)


def px_to_pt(px: ScreenPx) -> float:
    return px * 0.75


# -----------------------------------------------------------------------------
# Rounding
# -----------------------------------------------------------------------------
def round_px(px: float) -> int:
    """
    Round half up to a whole pixel.

    Python's round() is banker's rounding, which would make a 0.5px canvas
    edge depend on the parity of the integer part.
    """
    return int(math.floor(px + 0.5))


# -----------------------------------------------------------------------------
# Geometry
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle. Units are whatever the caller works in."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def inset(self, amount: float) -> "Rect":
        return Rect(self.x + amount, self.y + amount,
                    self.width - 2 * amount, self.height - 2 * amount)

    def contains(self, other: "Rect", eps: float = 0.0) -> bool:
        return (
            other.x >= self.x - eps
            and other.y >= self.y - eps
            and other.right <= self.right + eps
            and other.bottom <= self.bottom + eps
        )

    def intersects(self, other: "Rect") -> bool:
        return (
            self.x < other.right and self.right > other.x
            and self.y < other.bottom and self.bottom > other.y
        )

    def is_finite(self) -> bool:
        return all(math.isfinite(v) for v in (self.x, self.y, self.width, self.height))

    def to_box(self) -> tuple[int, int, int, int]:
        """Integer (left, top, right, bottom) box as Pillow expects."""
        left = round_px(self.x)
        top = round_px(self.y)
        return left, top, round_px(self.right), round_px(self.bottom)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}
