# services/specs.py
"""
Canonical product print specifications.

Every product uses the standard 1/8" bleed and 1/4" safe margin. Sizes are
stored in inches (how the catalog is sold) and converted to mm once here.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from constants import DEFAULT_DPI, MM_PER_INCH, STANDARD_BLEED_IN, STANDARD_SAFE_IN
from services.printing.document import PrintSide, PrintSpecification, TrimSize

BLEED_MM = STANDARD_BLEED_IN * MM_PER_INCH
SAFE_MM = STANDARD_SAFE_IN * MM_PER_INCH

# ---- 1) Size table (width x height, inches; cards use the folded panel) ----

SIZE_DIMENSIONS_IN: Dict[str, Tuple[float, float]] = {
    "a6": (4.1, 5.8),
    "5x7": (5.0, 7.0),
    "a5": (5.8, 8.3),
    "square": (5.5, 5.5),
    "4x6": (4.0, 6.0),
    "8x10": (8.0, 10.0),
    "11x14": (11.0, 14.0),
    "16x20": (16.0, 20.0),
    "18x24": (18.0, 24.0),
    "24x36": (24.0, 36.0),
}

DEFAULT_SIZE_ID = "5x7"

# ---- 2) Which sides each product type has ----

PRODUCT_SIDES: Dict[str, List[str]] = {
    "card": ["front", "inside", "back"],
    "postcard": ["front", "back"],
    "invitation": ["front"],
    "announcement": ["front"],
    "print": ["front"],
}


def _side(side_id: str, w_in: float, h_in: float, name: Optional[str] = None) -> PrintSide:
    return PrintSide(
        id=side_id,
        name=name,
        trim_mm=TrimSize(w=w_in * MM_PER_INCH, h=h_in * MM_PER_INCH),
        bleed_mm=BLEED_MM,
        safe_mm=SAFE_MM,
    )


def generate_print_spec_for_size(
    product_type: str,
    size_id: str,
    orientation: str = "portrait",
    dpi: int = DEFAULT_DPI,
) -> PrintSpecification:
    """
    Build a spec for a product type at a catalog size.

    Unknown sizes fall back to 5x7; unknown product types raise, since the
    side list decides how many pages the document must carry.
    """
    if product_type not in PRODUCT_SIDES:
        raise ValueError(f"Unknown product type: {product_type}")
    if orientation not in ("portrait", "landscape"):
        raise ValueError(f"Unknown orientation: {orientation}")

    w, h = SIZE_DIMENSIONS_IN.get(size_id, SIZE_DIMENSIONS_IN[DEFAULT_SIZE_ID])
    if orientation == "landscape":
        w, h = max(w, h), min(w, h)
    else:
        w, h = min(w, h), max(w, h)

    sides = tuple(_side(side_id, w, h) for side_id in PRODUCT_SIDES[product_type])
    return PrintSpecification(sides=sides, dpi=dpi)


# ---- 3) Named presets ----

PRINT_SPEC_PRESETS: Dict[str, PrintSpecification] = {
    "poster_simple": PrintSpecification(sides=(_side("front", 18, 24, "Poster"),)),
    "greeting_card_bifold": PrintSpecification(sides=(
        _side("front", 5, 7, "Front"),
        _side("inside", 5, 7, "Inside"),
        _side("back", 5, 7, "Back"),
    )),
    "postcard_front_back": PrintSpecification(sides=(
        _side("front", 4, 6, "Front"),
        _side("back", 4, 6, "Back"),
    )),
    "invitation_flat": PrintSpecification(sides=(_side("front", 5, 7, "Front"),)),
    "announcement_flat": PrintSpecification(sides=(_side("front", 5, 7, "Front"),)),
}


def get_print_spec(spec_id: str) -> Optional[PrintSpecification]:
    return PRINT_SPEC_PRESETS.get(spec_id)
